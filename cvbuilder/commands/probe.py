import click
from .. import config as config_module
from ..cli_logger import logger
from ..options import OPENCV_DEPENDENCIES
from ..probe import PlatformProbe, ProbeConfig
from ..utils import resolve_dependencies, with_resolved_paths

@click.command()
@click.pass_context
def probe(ctx):
    """Show the platform facts and dependency prefixes a build would use."""
    conf = config_module.load_config(path=ctx.obj["path"])
    logger.info("Probing the host platform...")
    facts = PlatformProbe(ProbeConfig.from_config(conf)).probe()

    for key in sorted(facts.values):
        click.echo(f"{key:<16} {facts.values[key]}")
    for key in sorted(facts.failures):
        logger.warning(f"{key}: {facts.failures[key].reason}")

    click.echo("")
    resolved = resolve_dependencies(OPENCV_DEPENDENCIES, conf)
    for dependency in with_resolved_paths(OPENCV_DEPENDENCIES, resolved):
        location = dependency.resolved_path if dependency.present else "not present"
        click.echo(f"{dependency.name:<16} {dependency.requirement:<12} {location}")

    if facts.failures:
        logger.warning("Some facts could not be determined; rules that need them will fail.")
        return False
    logger.success("All platform facts determined.")
    return True
