import click
import copy
import os
from .. import config as config_module
from ..cli_logger import logger


def _prompt_for_input(prompt, default, validation_func=None, **kwargs):
    while True:
        value = click.prompt(prompt, default=default, **kwargs)
        if validation_func is None or validation_func(value):
            return value
        else:
            logger.warning(f"Invalid input for {prompt}. Please try again.")


@click.command()
@click.option('--non-interactive', is_flag=True, help='Run in non-interactive mode using default values.')
@click.pass_context
def init(ctx, non_interactive):
    """Create a cvbuilder.toml for an extracted OpenCV source tree."""
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    if os.path.exists(config_file_path):
        logger.warning(f"{config_file_path} already exists. Use 'cvbuilder config edit' to change it.")
        return

    conf = copy.deepcopy(config_module.DEFAULT_CONFIG)
    if non_interactive:
        logger.info("Running in non-interactive mode with default values.")
    else:
        logger.info("Please provide the following details:")
        try:
            conf["build"]["source_dir"] = _prompt_for_input("OpenCV source directory", ".", validation_func=os.path.isdir)
            conf["build"]["prefix"] = _prompt_for_input("Installation prefix", conf["build"]["prefix"])
            conf["toolchain"]["cc"] = _prompt_for_input("C compiler", conf["toolchain"]["cc"])
            conf["toolchain"]["python"] = _prompt_for_input("Python interpreter", conf["toolchain"]["python"])
            conf["toolchain"]["python_config"] = _prompt_for_input("python-config executable", conf["toolchain"]["python_config"])
            conf["dependencies"]["opt_root"] = _prompt_for_input("Dependency prefix root", conf["dependencies"]["opt_root"])
        except click.Abort:
            logger.warning("\nInitialization aborted by user.")
            return

    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.success(f"Configuration saved to {config_file_path}")
        logger.info("Next steps: Run 'cvbuilder plan' to review the resolved flags.")
