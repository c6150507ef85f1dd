# soilrisk/services/config_loader.py
import os
import logging
import dataclasses
from configparser import ConfigParser
from typing import Dict, Any

from ..analysis.models import (
    LossRateSettings, DEFAULT_LOSS_RATE_SETTINGS,
    EvaluationSettings, DEFAULT_EVALUATION_SETTINGS
)

logger = logging.getLogger(__name__)


def get_config_path(filename: str = 'config.ini') -> str:
    """
    Path of a file in the config directory.

    The directory is $SOILRISK_CONFIG_DIR when set, otherwise 'config/'
    at the repository root.
    """
    config_dir = os.environ.get('SOILRISK_CONFIG_DIR')
    if not config_dir:
        module_path = os.path.dirname(os.path.abspath(__file__))
        config_dir = os.path.join(module_path, '..', '..', 'config')
    return os.path.join(config_dir, filename)


def load_config(filename: str = 'config.ini', section: str = 'basic') -> Dict[str, Any]:
    """
    Loads a specific section from the config.ini file.

    Args:
        filename (str): The name of the config file (default: 'config.ini').
        section (str): The [section] in the INI file to load.

    Returns:
        Dict[str, Any]: A dictionary of the settings.

    Raises:
        FileNotFoundError: If the config.ini file cannot be found.
        KeyError: If the specified section is not found in the file.
    """
    config_path = get_config_path(filename)

    if not os.path.exists(config_path):
        logger.error(f"Configuration file not found at: {config_path}")
        raise FileNotFoundError(f"Configuration file not found at: {config_path}")

    parser = ConfigParser()
    parser.read(config_path)

    if not parser.has_section(section):
        logger.error(f"Section '{section}' not found in the {config_path} file")
        raise KeyError(f"Section '{section}' not found in the {config_path} file")

    int_keys = {'port', 'pool_size', 'max_allocation_retries'}

    config: Dict[str, Any] = {}
    for key, value in parser.items(section):
        if key in int_keys and value:
            try:
                config[key] = int(value)
            except ValueError:
                logger.warning(f"Invalid integer value for '{key}': {value}. Using None.")
                config[key] = None
        else:
            config[key] = value

    return config


def _load_settings_section(filename: str, section: str, defaults):
    """
    Build a settings dataclass from defaults overridden by one config section.

    Missing file, missing section or invalid values fall back to defaults.
    """
    config_path = get_config_path(filename)

    if not os.path.exists(config_path):
        logger.info(f"Config file not found at {config_path}, using default [{section}] settings")
        return defaults

    parser = ConfigParser()
    parser.read(config_path)

    if not parser.has_section(section):
        logger.debug(f"No [{section}] section in config, using defaults")
        return defaults

    kwargs = {}
    for f in dataclasses.fields(defaults):
        if not parser.has_option(section, f.name):
            continue
        default_value = getattr(defaults, f.name)
        try:
            if isinstance(default_value, bool):
                kwargs[f.name] = parser.getboolean(section, f.name)
            elif isinstance(default_value, int):
                kwargs[f.name] = parser.getint(section, f.name)
            elif isinstance(default_value, float):
                kwargs[f.name] = parser.getfloat(section, f.name)
            else:
                kwargs[f.name] = parser.get(section, f.name).strip()
        except ValueError as e:
            logger.warning(f"Invalid value for '{f.name}' in [{section}]: {e}. Using default.")

    logger.info(f"Loaded [{section}] from {config_path} ({len(kwargs)} custom parameters)")
    return dataclasses.replace(defaults, **kwargs)


def load_loss_rate_settings(filename: str = 'config.ini') -> LossRateSettings:
    """
    Loads the zinc loss-rate constants from the [loss_rate] section.

    Any parameter missing from the section keeps its default value.
    """
    return _load_settings_section(filename, 'loss_rate', DEFAULT_LOSS_RATE_SETTINGS)


def load_evaluation_settings(filename: str = 'config.ini') -> EvaluationSettings:
    """Loads version-allocation settings from the [evaluation] section."""
    settings = _load_settings_section(filename, 'evaluation', DEFAULT_EVALUATION_SETTINGS)
    if settings.max_allocation_retries < 1:
        logger.warning(
            f"max_allocation_retries={settings.max_allocation_retries} is invalid, using 1"
        )
        settings = dataclasses.replace(settings, max_allocation_retries=1)
    return settings
