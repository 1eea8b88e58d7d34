"""
Utility functions for the ROM runner
"""

import logging
import os
from typing import Callable, Iterable, Optional, Tuple, TypeVar

T = TypeVar('T')

log = logging.getLogger(__name__)


def first_success(attempts: Iterable[Tuple[str, Callable[[], Optional[T]]]]) -> Optional[Tuple[str, T]]:
    """
    Run labelled attempts in order until one succeeds.

    An attempt succeeds when it returns a truthy value. Attempts are lazy,
    so later ones never run once an earlier one has succeeded.

    Args:
        attempts: Iterable of (label, callable) pairs

    Returns:
        (label, result) of the first success, or None if all failed
    """
    for label, attempt in attempts:
        result = attempt()
        if result:
            log.debug("attempt '%s' succeeded", label)
            return label, result
        log.debug("attempt '%s' failed", label)
    return None


def strip_variant(base_name: str, delimiter: str = '__') -> Optional[str]:
    """
    Return the part of a name before the variant delimiter.

    `Foo__patch1` -> `Foo`. Returns None when there is no delimiter.
    """
    if delimiter not in base_name:
        return None
    return base_name.split(delimiter, 1)[0]


def expand_path(path: str) -> str:
    """Expand `~` against the current user's home"""
    return os.path.expanduser(path) if path else path


def format_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024:
            if unit == 'B':
                return f"{size_bytes} {unit}"
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} PB"
