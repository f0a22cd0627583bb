"""Configuration template substitution utilities."""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic_core import ValidationError

from servicehub.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(text: str, env: Mapping[str, str] | None = None) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message
    """
    source = os.environ if env is None else env

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return source.get(var_name, default)

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = source.get(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = source.get(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return _PLACEHOLDER.sub(replacer, text)


def substitute_config_values(node: Any, env: Mapping[str, str]) -> Any:
    """Substitute placeholders in every string value of a parsed YAML document.

    Keys and comments are left alone; only scalar string values are expanded.
    """
    if isinstance(node, dict):
        return {key: substitute_config_values(value, env) for key, value in node.items()}
    if isinstance(node, list):
        return [substitute_config_values(item, env) for item in node]
    if isinstance(node, str):
        return substitute_env_vars(node, env)
    return node


def environment_overrides(env_mode: str, env: Mapping[str, str]) -> dict[str, str]:
    """Resolve ``<ENV>_VAR`` variables into plain ``VAR`` names.

    ``PRODUCTION_JWT_SECRET_KEY`` overrides ``JWT_SECRET_KEY`` when the
    application runs in production.
    """
    prefix = f"{env_mode.upper()}_"
    resolved = dict(env)
    for var_name, var_value in env.items():
        if var_name.startswith(prefix):
            resolved[var_name[len(prefix):]] = var_value
            logger.debug(f"Using {var_name} for {var_name[len(prefix):]}")
    return resolved


def load_templated_yaml(
    file_path: Path, env_mode: str | None = None, env: Mapping[str, str] | None = None
) -> ConfigData:
    """
    Load a YAML file with environment variable substitution.

    Args:
        file_path: Path to the YAML file
        env_mode: Active environment; defaults to APP_ENVIRONMENT
        env: Variables to substitute from; defaults to the process environment

    Returns:
        Parsed and validated configuration

    Raises:
        ValueError: If required environment variables are missing or the
            document is invalid
        FileNotFoundError: If the YAML file doesn't exist
    """
    with open(file_path) as f:
        content = f.read()

    source = dict(os.environ if env is None else env)
    explicit_mode = env_mode or source.get("APP_ENVIRONMENT")
    env_mode = explicit_mode or "development"
    logger.info(f"Loading configuration for environment: {env_mode}")

    try:
        loaded = yaml.safe_load(content)
        if not loaded:
            raise ValueError("Failed to parse YAML")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e

    config_data = substitute_config_values(
        loaded.get("config", {}), environment_overrides(env_mode, source)
    )

    try:
        config = ConfigData(**config_data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    if explicit_mode:
        config.app.environment = explicit_mode  # type: ignore[assignment]
    return config
