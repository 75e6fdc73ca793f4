"""
Configuration Loading Functions.

Handles loading trust configuration from YAML and applying environment
overrides.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment variables
---------------------
    DISABLE_EMBED_CA        skip the embedded fallback root bundle
    DISABLE_SYSTEM_CA       skip the operating system root pool
    TRUSTGATE_BASE_PATH     base directory for relative CA/key paths
    TRUSTGATE_PEER_USAGE    server_auth | client_auth | any

Unlike most settings, trust configuration never falls back to defaults on a
broken file: a YAML or validation error is raised so the caller cannot end up
with a pool it did not ask for.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from trustgate.core.config.trust import TrustConfig
from trustgate.core.exceptions import ConfigValidationError
from trustgate.core.logging import get_logger
from trustgate.core.security.env import (
    BASE_PATH_ENV,
    DISABLE_EMBED_CA_ENV,
    DISABLE_SYSTEM_CA_ENV,
    PEER_USAGE_ENV,
    PEER_USAGES,
    get_env_bool,
    get_env_path,
    get_env_whitelist,
)

logger = get_logger(__name__)

DEFAULT_CONFIG_FILENAMES = ("trustgate.yaml", "trust.yaml")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles nested structures including:
    - Strings with ${VAR_NAME} or ${VAR_NAME:default} syntax
    - Nested dictionaries
    - Nested lists

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        # Match ${VAR_NAME} or ${VAR_NAME:default} pattern
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    # Return primitives (int, float, bool, None) unchanged
    return value


def _apply_env_overrides(config: TrustConfig) -> TrustConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    config.disable_embed_ca = get_env_bool(
        DISABLE_EMBED_CA_ENV, default=config.disable_embed_ca
    )
    config.disable_system_ca = get_env_bool(
        DISABLE_SYSTEM_CA_ENV, default=config.disable_system_ca
    )

    base_path = get_env_path(BASE_PATH_ENV)
    if base_path is not None:
        config.base_path = base_path

    peer_usage = get_env_whitelist(PEER_USAGE_ENV, PEER_USAGES)
    if peer_usage:
        config.peer_usage = peer_usage  # type: ignore[assignment]

    return config


def _find_config_file(base_path: Path) -> Optional[Path]:
    """Return the first default config file present in base_path."""
    for filename in DEFAULT_CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def _parse_config(data: Any, base_path: Path, source: str) -> TrustConfig:
    """Validate raw YAML data into a TrustConfig."""
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{source}: top level must be a mapping")

    data = expand_env_vars(data)
    data.setdefault("base_path", base_path)

    try:
        return TrustConfig(**data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigValidationError(
            f"{source}: invalid value for {field or 'config'}: {first.get('msg')}",
            field=field or None,
        ) from e


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> TrustConfig:
    """
    Load trust configuration from YAML file with environment overrides.

    Args:
        config_path: Path to config file. Defaults to trustgate.yaml or
            trust.yaml in base_path; defaults are used when neither exists.
        base_path: Base path for relative CA paths. Defaults to the config
            file's directory, or the current directory.

    Returns:
        Validated TrustConfig.

    Raises:
        ConfigValidationError: If an explicit file is missing, is not valid
            YAML, or fails validation.
    """
    if config_path is None:
        search_base = base_path or Path.cwd()
        config_path = _find_config_file(search_base)
        if config_path is None:
            return load_config_from_env(search_base)
    elif not Path(config_path).exists():
        raise ConfigValidationError(f"Config file not found: {config_path}")

    config_path = Path(config_path)
    base_path = base_path or config_path.resolve().parent

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Could not read {config_path}: {e}") from e

    config = _parse_config(data, base_path, str(config_path))
    logger.info(
        "Loaded trust configuration",
        path=str(config_path),
        pins=len(config.fingerprints),
        custom_cas=len(config.custom_ca_files) + len(config.custom_ca_strings),
    )
    return _apply_env_overrides(config)


def load_config_from_env(base_path: Optional[Path] = None) -> TrustConfig:
    """
    Create default configuration with environment overrides.

    This is what a process gets when it never wrote a config file: the
    DISABLE_* flags are read once, at the time of the call.
    """
    config = TrustConfig(base_path=base_path or Path.cwd())
    return _apply_env_overrides(config)

