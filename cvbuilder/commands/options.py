import click
from ..options import BOOLEAN, declare_opencv_options

def _format_default(option):
    if option.kind == BOOLEAN:
        return "on" if option.default else "off"
    return f"{option.default} (one of: {', '.join(option.choices)})"

@click.command(name="options")
def list_options():
    """List the build options and their defaults."""
    registry = declare_opencv_options()
    for option in registry.options():
        click.echo(f"{option.name:<15} {_format_default(option):<32} {option.description}")
