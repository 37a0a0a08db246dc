import click
from .. import config as config_module
from .. import builder
from ..cli_logger import logger
from ..decorators import handle_exceptions
from .selection import selection_options, collect_selections

@click.command()
@click.pass_context
@selection_options
@click.option("--source", "source_dir", default=None, help="Path to the extracted OpenCV source tree.")
@click.option("--prefix", default=None, help="Installation prefix.")
@click.option("--jobs", "-j", type=int, default=None, help="Number of parallel compile jobs.")
@click.option("--keep-build-dir", is_flag=True, help="Keep the build directory after the build.")
@handle_exceptions
def build(ctx, with_, without, assignments, source_dir, prefix, jobs, keep_build_dir):
    """Patch, configure, compile and install OpenCV."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.warning("No cvbuilder.toml found, using default settings.")
        logger.info("Run 'cvbuilder init' to create a project configuration.")

    selections = collect_selections(with_, without, assignments)
    logger.info("Building OpenCV...")
    build_successful = builder.build_opencv(
        conf,
        selections,
        source_dir=source_dir,
        prefix=prefix,
        jobs=jobs,
        keep_build_dir=keep_build_dir or None,
    )
    if not build_successful:
        raise click.ClickException("Build failed. Please check the logs for details.")
    logger.success("Build completed successfully.")
    return True
