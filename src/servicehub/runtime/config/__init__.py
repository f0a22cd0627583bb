"""Configuration models and loaders."""

from .config_data import ConfigData, validate_startup_config
from .config_template import load_templated_yaml
from .settings import EnvironmentVariables

__all__ = [
    "ConfigData",
    "EnvironmentVariables",
    "load_templated_yaml",
    "validate_startup_config",
]
