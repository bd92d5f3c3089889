import toml
import os
from .cli_logger import logger
from .errors import ConfigurationError

CONFIG_FILE = "blasbuilder.toml"

def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    if not os.path.exists(config_path):
        return {}
    logger.info(f"Loading configuration from {config_path}")
    try:
        with open(config_path, "r") as f:
            return toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Error decoding TOML file at {config_path}: {e}") from e
    except IOError as e:
        raise ConfigurationError(f"Error reading configuration file at {config_path}: {e}") from e

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

def get_section(config, name):
    section = config.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] in {CONFIG_FILE} must be a table, got {type(section).__name__}")
    return section
