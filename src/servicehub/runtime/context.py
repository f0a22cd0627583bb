import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger
from pydantic import BaseModel

from servicehub.runtime.config.config_data import ConfigData
from servicehub.runtime.config.config_template import load_templated_yaml
from servicehub.runtime.config.settings import EnvironmentVariables


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


_DOTENV_FILE = ".env"

_app_context: ContextVar[AppContext | None] = ContextVar("app_context", default=None)


def load_default_config(config_file: Path | None = None) -> ConfigData:
    """Build the startup configuration from config.yaml, or defaults if absent.

    Placeholders resolve against the process environment first, then ``.env``.
    """
    env = EnvironmentVariables()
    path = config_file or Path(env.config_file)
    if not path.exists():
        logger.warning(f"Config file {path} not found; using built-in defaults")
        config = ConfigData()
        config.app.environment = env.environment
        return config
    dotenv = {k: v for k, v in dotenv_values(_DOTENV_FILE).items() if v is not None}
    return load_templated_yaml(path, env={**dotenv, **os.environ})


def get_context() -> AppContext:
    """Get the current application context, loading the default one on first use."""
    context = _app_context.get()
    if context is None:
        context = AppContext(config=load_default_config())
        _app_context.set(context)
    return context


def set_context(context: AppContext) -> Token[AppContext | None]:
    """Set the current application context."""
    return _app_context.set(context)


def _recursive_model_dump_exclude_unset(model: BaseModel) -> dict:
    """Dump only explicitly set fields, descending into nested models."""
    result = {}
    explicitly_set_fields = model.model_fields_set

    for field_name in model.__class__.model_fields:
        field_value = getattr(model, field_name)

        if isinstance(field_value, BaseModel):
            nested_result = _recursive_model_dump_exclude_unset(field_value)
            if nested_result or field_name in explicitly_set_fields:
                result[field_name] = nested_result or field_value.model_dump()
        elif field_name in explicitly_set_fields:
            result[field_name] = field_value

    return result


def _recursive_dict_merge(base_dict: dict, override_dict: dict) -> dict:
    result = base_dict.copy()

    for key, value in override_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _recursive_dict_merge(result[key], value)
        else:
            result[key] = value

    return result


def _merge_configs(base_config: ConfigData, override_config: ConfigData) -> ConfigData:
    """Merge the explicitly set fields of override_config into base_config."""
    base_dict = base_config.model_dump()
    override_dict = _recursive_model_dump_exclude_unset(override_config)
    merged_dict = _recursive_dict_merge(base_dict, override_dict)
    return ConfigData.model_validate(merged_dict)


@contextmanager
def with_context(config_override: ConfigData | None = None) -> Iterator[ConfigData]:
    """Temporarily override the application configuration.

    Only fields explicitly set on ``config_override`` replace the current
    values; everything else is inherited from the surrounding context.

    Example:
        override = ConfigData()
        override.jwt.expiration_minutes = 5
        with with_context(override) as config:
            assert config.jwt.expiration_minutes == 5
    """
    current_config = get_context().config
    if config_override is None:
        yield current_config
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    merged_config = _merge_configs(current_config, config_override)
    token = set_context(replace(get_context(), config=merged_config))
    try:
        yield merged_config
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the entire current configuration."""
    set_context(AppContext(config=config))


def get_config() -> ConfigData:
    """Convenience function to get the current configuration."""
    return get_context().config
