import toml
import os
from .cli_logger import logger

CONFIG_FILE = "cvbuilder.toml"

DEFAULT_CONFIG = {
    "build": {
        "source_dir": ".",
        "prefix": "/usr/local",
        "build_dir": "macbuild",
        "keep_build_dir": False,
        "apply_patch": True,
    },
    "options": {},
    "toolchain": {
        "cc": "cc",
        "python": "python3",
        "python_config": "python3-config",
    },
    "dependencies": {
        "opt_root": "/usr/local/opt",
        "paths": {},
    },
}

def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Loading configuration from {config_path}")
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error decoding TOML file at {config_path}: {e}")
            logger.info("Please check the file's format for syntax errors.")
        except IOError as e:
            logger.error(f"Error reading configuration file at {config_path}: {e}")
            logger.info("Please check file permissions.")
    return {}

def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
        return True
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False
