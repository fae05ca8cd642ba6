from typing import Optional
import logging
import os
import tomllib
from logging.handlers import TimedRotatingFileHandler
from typing import Dict

logger = logging.getLogger(__name__)

ENV_PREFIX = "AGGCHAIN_"

_config = None


def parse_key_value_str(field_list: str, require_value: bool = False) -> Dict[str, str]:
    """Parse a property assignment list into a dictionary.

    Args:
        field_list (str): A comma-separated string of key-value pairs in the format "key:value,key:value".
        require_value (bool, optional): If True, raises a ValueError when a key is missing a value.

    Returns:
        Dict[str, str]: Keys mapped to their values. A key without a value maps to
        the last dotted component of its own name.

    Raises:
        ValueError: If require_value is True and a key is missing a value.
    """
    result = {}
    for prop in field_list.split(","):
        key, *value = prop.split(":", 1)
        key = key.strip()
        value = value[0].strip() if len(value) > 0 else None

        if value is None:
            if require_value:
                raise ValueError(f"Value required for property '{key}'")
            value = key.rsplit(".", 1)[-1]

        result[key] = value

    return result


def reset_config():
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None


def get_config(reload=False, path="~/.aggchain.toml", ignore_env=False):
    """Get the configuration from the config file and environment variables.

    Args:
        reload (bool, optional): Force reload config from disk. Defaults to False.
        path (str, optional): Path to config file. Defaults to "~/.aggchain.toml".
        ignore_env (bool, optional): Skip the environment overlay.

    Returns:
        dict: Configuration dictionary combining file and environment settings.

    Notes:
        - Environment variables prefixed with 'AGGCHAIN_' override config file values;
          the key is the rest of the variable name, lower-cased.
        - Configuration is cached after first load unless reload=True
    """
    global _config
    if _config is None or reload:
        logger.debug("Loading configuration")
        config_path = os.path.expanduser(path)
        if os.path.exists(config_path):
            logger.info(f"Reading config from {config_path}")
            with open(config_path, 'rb') as f:
                _config = tomllib.load(f)
        else:
            logger.debug(f"Config file {config_path} not found, using empty config")
            _config = {}

        if not ignore_env:
            for env_var in os.environ:
                if env_var.startswith(ENV_PREFIX):
                    config_key = env_var[len(ENV_PREFIX):].lower()
                    _config[config_key] = os.environ[env_var]
                    logger.debug(f"Set {config_key} from environment variable {env_var}")

    return _config


def configure_logger(logger_levels: Optional[str] = None, base_level="WARNING", logger_files: Optional[str] = None):
    """Configure logging levels and handlers for specified loggers.

    Args:
        logger_levels (str): Logger name and level pairs in the format
            "logger1:LEVEL1,logger2:LEVEL2". Use "root" as logger name for the root logger.
            Defaults to the ``logger_levels`` configuration setting.
        base_level (str, optional): Level passed to logging.basicConfig. Defaults to "WARNING".
        logger_files (str, optional): Loggers mapped to file paths in "logger:path" format.
            Defaults to the ``logger_files`` configuration setting. Files rotate at midnight.

    Examples:
        >>> configure_logger("root:INFO,aggchain.mongo.manager:DEBUG")
    """

    if not logger_levels:
        logger_levels = get_config().get("logger_levels", None)

    if not logger_files:
        logger_files = get_config().get("logger_files", None)

    logging.basicConfig(level=base_level.upper())

    formatter = logging.Formatter('%(asctime)s - %(levelname)s:%(name)s:%(message)s')

    if logger_levels:
        for logger_name, level in parse_key_value_str(logger_levels).items():
            level = level.upper()
            target = logging.getLogger(logger_name if logger_name != "root" else None)
            target.setLevel(level)

            # Remove existing handlers to prevent duplicate logs
            target.handlers.clear()

            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            target.addHandler(console_handler)

    if logger_files:
        for logger_name, file_name in parse_key_value_str(logger_files).items():
            target = logging.getLogger(logger_name if logger_name != "root" else None)

            file_handler = TimedRotatingFileHandler(file_name, when='midnight', backupCount=7)
            file_handler.setLevel(target.level)
            file_handler.setFormatter(formatter)
            target.addHandler(file_handler)
