"""
Path validation for operator-supplied CA and key files.

Provides PathSanitizer, which resolves relative paths against the configured
base directory and refuses anything that escapes it.
"""

import re
from pathlib import Path
from typing import Optional, Union

from trustgate.core.exceptions import PathTraversalError
from trustgate.core.logging import get_logger

logger = get_logger(__name__)


class PathSanitizer:
    """
    Resolve file paths inside a base directory.

    Example:
        >>> sanitizer = PathSanitizer(base_dir=Path("/etc/trustgate"))
        >>> sanitizer.sanitize_path("ca/internal.pem")
        Path('/etc/trustgate/ca/internal.pem')

        >>> sanitizer.sanitize_path("../../../etc/shadow")
        >>> # Raises PathTraversalError
    """

    # Pattern to detect directory traversal attempts
    TRAVERSAL_PATTERN = re.compile(r"(^|[/\\])\.\.([/\\]|$)")

    def __init__(
        self, base_dir: Optional[Path] = None, allow_absolute: bool = True
    ) -> None:
        """
        Initialize the path sanitizer.

        Args:
            base_dir: The base directory relative paths are resolved against.
                     If None, uses current working directory.
            allow_absolute: Accept absolute paths outside base_dir. Operators
                     commonly point at /etc/ssl/...; relative paths are always
                     confined to base_dir.
        """
        self._base_dir = (base_dir or Path.cwd()).resolve()
        self._allow_absolute = allow_absolute

    @property
    def base_dir(self) -> Path:
        """Get the base directory."""
        return self._base_dir

    def sanitize_path(self, path: Union[str, Path]) -> Path:
        """
        Sanitize a path and resolve it against the base directory.

        This method:
        1. Detects and blocks '../' traversal attempts
        2. Resolves the path to an absolute path
        3. Ensures relative paths stay within base_dir

        Args:
            path: The path to sanitize.

        Returns:
            The resolved absolute Path.

        Raises:
            PathTraversalError: If the path attempts to escape base_dir.
        """
        assert path is not None, "Path cannot be None"
        assert self._base_dir.is_absolute(), "Base directory must be absolute"

        path_str = str(path).strip()

        # Check for obvious traversal attempts before resolution
        if self.TRAVERSAL_PATTERN.search(path_str):
            raise PathTraversalError(f"Path traversal detected in: {path_str!r}")

        path_obj = Path(path_str).expanduser()
        is_absolute = path_obj.is_absolute()
        if is_absolute and not self._allow_absolute:
            raise PathTraversalError(f"Absolute paths are not allowed: {path_str!r}")

        full_path = path_obj if is_absolute else self._base_dir / path_obj

        try:
            resolved = full_path.resolve()
        except (OSError, ValueError) as e:
            logger.error("Invalid path", path=repr(path_str))
            raise PathTraversalError("Invalid path: [REDACTED]") from e

        if is_absolute:
            return resolved

        # Symlinks inside base_dir may still point outside it
        try:
            resolved.relative_to(self._base_dir)
        except ValueError:
            raise PathTraversalError(
                f"Path escapes base directory: {path_str!r} resolves to {resolved}"
            )

        return resolved
