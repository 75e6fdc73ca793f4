"""
Safe environment variable parsing with validation.

Provides type-safe functions for reading the environment flags that shape
the trust pool at process start.

Threat Model
------------
Environment variables decide which roots a process trusts:

    1. **Silent trust expansion**: DISABLE_SYSTEM_CA=flase (typo)
       Defense: get_env_bool only accepts exact boolean spellings; anything
       else keeps the default and logs a warning

    2. **Path Traversal**: TRUSTGATE_BASE_PATH=../../../etc
       Defense: get_env_path with PathSanitizer

Usage Pattern
-------------
Instead of unsafe direct environment access:

    # DANGEROUS - "no" and "off" silently become True
    disable = bool(os.environ.get("DISABLE_SYSTEM_CA"))

Use safe getters:

    from trustgate.core.security.env import get_env_bool
    disable = get_env_bool("DISABLE_SYSTEM_CA")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import FrozenSet, Optional

from trustgate.core.exceptions import PathTraversalError
from trustgate.core.logging import get_logger
from trustgate.core.security.path import PathSanitizer

logger = get_logger(__name__)

DISABLE_EMBED_CA_ENV = "DISABLE_EMBED_CA"
DISABLE_SYSTEM_CA_ENV = "DISABLE_SYSTEM_CA"
BASE_PATH_ENV = "TRUSTGATE_BASE_PATH"
PEER_USAGE_ENV = "TRUSTGATE_PEER_USAGE"

# Exact spellings accepted by strconv.ParseBool-style parsers
TRUE_VALUES: FrozenSet[str] = frozenset(["1", "t", "T", "TRUE", "true", "True"])
FALSE_VALUES: FrozenSet[str] = frozenset(["0", "f", "F", "FALSE", "false", "False"])

PEER_USAGES: FrozenSet[str] = frozenset(["server_auth", "client_auth", "any"])


def get_env_bool(
    name: str,
    default: bool = False,
) -> bool:
    """
    Get boolean from environment variable.

    Recognizes exactly:
    - True: "1", "t", "T", "TRUE", "true", "True"
    - False: "0", "f", "F", "FALSE", "false", "False"

    Anything else (including an empty value) returns the default and logs
    a warning.

    Args:
        name: Environment variable name.
        default: Default value if not set or unrecognized.

    Returns:
        Boolean value.

    Example:
        >>> get_env_bool("DISABLE_SYSTEM_CA")
        False

        >>> # With DISABLE_SYSTEM_CA="true"
        >>> get_env_bool("DISABLE_SYSTEM_CA")
        True
    """
    value = os.environ.get(name)
    if value is None:
        return default

    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False

    logger.warning(
        f"Invalid boolean value for {name}={value!r}: Returning default {default}"
    )
    return default


def get_env_path(
    name: str,
    base_dir: Optional[Path] = None,
    default: Optional[Path] = None,
    must_exist: bool = False,
) -> Optional[Path]:
    """
    Get path from environment variable with traversal protection.

    When base_dir is provided, uses PathSanitizer to ensure a relative
    path doesn't escape the base directory.

    Args:
        name: Environment variable name.
        base_dir: Base directory for path validation.
        default: Default path if not set or invalid.
        must_exist: If True, returns default if path doesn't exist.

    Returns:
        Validated Path or default.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        if base_dir is not None:
            path = PathSanitizer(base_dir).sanitize_path(value)
        else:
            path = Path(value).expanduser().resolve()

        if must_exist and not path.exists():
            return default

        return path

    except (OSError, ValueError, PathTraversalError) as e:
        logger.warning(
            f"Error parsing environment variable {name}: Returning default {default}",
            error=str(e),
        )
        return default


def get_env_whitelist(
    name: str,
    allowed: FrozenSet[str],
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get string from environment variable with whitelist validation.

    Comparison is case-insensitive; the canonical allowed spelling is returned.

    Example:
        >>> # With TRUSTGATE_PEER_USAGE="CLIENT_AUTH"
        >>> get_env_whitelist("TRUSTGATE_PEER_USAGE", PEER_USAGES)
        'client_auth'
    """
    value = os.environ.get(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    for allowed_value in allowed:
        if normalized == allowed_value.lower():
            return allowed_value

    logger.warning(f"Value for {name} not in allowed set: Returning default {default}")
    return default
