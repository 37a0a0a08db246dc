import click
from .. import config as config_module
from .. import builder
from ..decorators import handle_exceptions
from .selection import selection_options, collect_selections

@click.command()
@click.pass_context
@selection_options
@click.option("--source", "source_dir", default=None, help="Path to the extracted OpenCV source tree.")
@click.option("--prefix", default=None, help="Installation prefix.")
@handle_exceptions
def plan(ctx, with_, without, assignments, source_dir, prefix):
    """Print the resolved CMake flags without building anything."""
    conf = config_module.load_config(path=ctx.obj["path"])
    selections = collect_selections(with_, without, assignments)
    build_plan = builder.resolve_plan(conf, selections, source_dir=source_dir, prefix=prefix)

    click.echo(f"# working directory: {build_plan.working_directory}")
    for flag in build_plan.flags:
        click.echo(flag.render())
    if build_plan.patch is not None:
        for target in build_plan.patch.targets:
            click.echo(f"# patches {target}")
    for edit in build_plan.edits:
        click.echo(f"# edits {edit.path}")
    return True
