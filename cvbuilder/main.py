import click
from .commands import *


@click.group()
@click.option("--path", "-p", default=".", help="Path to the project directory.")
@click.pass_context
def cli(ctx, path):
    """cvbuilder: resolve, patch and build OpenCV with bag-of-words wrappers."""
    ctx.obj = {"path": path}

cli.add_command(init)
cli.add_command(config)
cli.add_command(list_options)
cli.add_command(probe)
cli.add_command(plan)
cli.add_command(build)
cli.add_command(log)
cli.add_command(version)

if __name__ == '__main__':
    cli()
