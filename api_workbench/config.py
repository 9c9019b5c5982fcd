"""
Application configuration for API Workbench.

Settings are read from API_WORKBENCH_* environment variables on top of the
defaults below and validated with pydantic.
"""

import os
from pathlib import Path
from typing import Literal, Mapping

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import ConfigError


APP_NAME = "api-workbench"
ENV_PREFIX = "API_WORKBENCH_"

# Directory used by releases before the XDG layout
LEGACY_DIR_NAME = ".api-workbench"

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_HISTORY_LIMIT = 100
DEFAULT_FLASH_SECONDS = 3.0
DEFAULT_MAX_RESPONSE_SIZE = 100 * 1024 * 1024
DEFAULT_MAX_ROWS = 10000
DEFAULT_DB_CONNECT_TIMEOUT = 10

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class Settings(BaseModel):
    """Validated runtime settings."""
    config_dir: Path
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, gt=0)
    flash_seconds: float = Field(default=DEFAULT_FLASH_SECONDS, gt=0)
    max_response_size: int = Field(default=DEFAULT_MAX_RESPONSE_SIZE, gt=0)
    max_rows: int = Field(default=DEFAULT_MAX_ROWS, gt=0)
    db_connect_timeout: int = Field(default=DEFAULT_DB_CONNECT_TIMEOUT, gt=0)
    log_level: LogLevel = "INFO"

    @property
    def log_file(self) -> Path:
        return self.config_dir / f"{APP_NAME}.log"

    @property
    def export_dir(self) -> Path:
        return self.config_dir / "exports"


def default_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """
    Resolve the configuration directory following the XDG base directory layout.

    Raises:
        ConfigError: if neither XDG_CONFIG_HOME nor a home directory is available
    """
    environ = os.environ if environ is None else environ

    config_home = environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / APP_NAME

    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigError("could not determine the home directory", e)
    return home / ".config" / APP_NAME


def legacy_config_dir() -> Path | None:
    """Location of the pre-XDG configuration directory, if a home directory exists."""
    try:
        return Path.home() / LEGACY_DIR_NAME
    except RuntimeError:
        return None


def load_settings(
    environ: Mapping[str, str] | None = None,
    **overrides,
) -> Settings:
    """
    Build Settings from environment variables and explicit overrides.

    Explicit overrides (e.g. from the command line) win over the environment.

    Raises:
        ConfigError: if the configuration directory cannot be determined or a
            value fails validation
    """
    environ = os.environ if environ is None else environ

    values: dict[str, object] = {}
    for field_name in Settings.model_fields:
        raw = environ.get(ENV_PREFIX + field_name.upper())
        if raw not in (None, ""):
            values[field_name] = raw

    if "log_level" in values:
        values["log_level"] = str(values["log_level"]).upper()

    values.update({k: v for k, v in overrides.items() if v is not None})

    if "config_dir" not in values:
        values["config_dir"] = default_config_dir(environ)

    try:
        return Settings(**values)
    except PydanticValidationError as e:
        messages = []
        for error in e.errors():
            loc = " -> ".join(str(l) for l in error["loc"])
            messages.append(f"{loc}: {error['msg']}")
        raise ConfigError("invalid configuration: " + "; ".join(messages), e)
