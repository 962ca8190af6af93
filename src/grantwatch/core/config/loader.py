"""
Configuration loader for YAML files and the process environment.

Loads and validates configuration into Pydantic models. Credentials come
only from the environment.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from grantwatch.core.errors import ConfigurationError
from .models import AppConfig, Credentials


USERNAME_ENV = "IDOX_USERNAME"
PASSWORD_ENV = "IDOX_PASSWORD"

DEFAULT_CONFIG_PATH = Path("configs/grantwatch.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}", path=str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}", path=str(path), details=str(e)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}", path=str(path), details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping", path=str(path))
    return data


def _expand_env_vars(data: Any, environ: Mapping[str, str]) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(data, str):
        return _ENV_PATTERN.sub(
            lambda match: environ.get(match.group(1), match.group(2) or ""),
            data,
        )
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, environ) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item, environ) for item in data]
    return data


def credentials_from_env(environ: Mapping[str, str] | None = None) -> Credentials | None:
    """Read portal credentials from the environment.

    Returns None when either value is missing or blank; the runner turns
    that into a ConfigurationError before any browser is launched.
    """
    environ = os.environ if environ is None else environ
    username = (environ.get(USERNAME_ENV) or "").strip()
    password = environ.get(PASSWORD_ENV) or ""

    if not username or not password:
        return None

    return Credentials(username=username, password=password)


def load_app_config(
    path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration.

    Args:
        path: YAML file (default: configs/grantwatch.yaml, skipped if absent)
        environ: Environment mapping (default: os.environ)
        expand_env: Whether to expand environment variables in YAML values

    Returns:
        Validated AppConfig with credentials attached when available

    Raises:
        ConfigurationError: If an explicit file is missing or the config is invalid
    """
    environ = os.environ if environ is None else environ

    if path is None:
        data = _load_yaml_file(DEFAULT_CONFIG_PATH) if DEFAULT_CONFIG_PATH.exists() else {}
        source = DEFAULT_CONFIG_PATH
    else:
        source = Path(path)
        data = _load_yaml_file(source)

    if "credentials" in data:
        raise ConfigurationError(
            f"Credentials must come from {USERNAME_ENV}/{PASSWORD_ENV}, not {source}",
            path=str(source),
        )

    if expand_env:
        data = _expand_env_vars(data, environ)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}",
            path=str(source),
            details=str(e),
        ) from e

    return config.model_copy(update={"credentials": credentials_from_env(environ)})


def validate_config_file(path: Path | str, environ: Mapping[str, str] | None = None) -> list[str]:
    """Validate a configuration file without building a config.

    Environment references are expanded first, as load_app_config does.

    Returns:
        List of validation error messages (empty if valid)
    """
    environ = os.environ if environ is None else environ
    path = Path(path)
    errors: list[str] = []

    try:
        data = _load_yaml_file(path)
    except ConfigurationError as e:
        errors.append(str(e))
        return errors

    if "credentials" in data:
        errors.append(f"credentials: set {USERNAME_ENV}/{PASSWORD_ENV} in the environment instead")

    try:
        AppConfig.model_validate(_expand_env_vars(data, environ))
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")

    return errors
