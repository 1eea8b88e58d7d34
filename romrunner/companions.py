"""
Companion linking - reflects `<base>.*` siblings of a ROM into the cache.
"""

import logging
import os
from typing import List

log = logging.getLogger(__name__)


def find_companions(source_dir: str, base_name: str, exclude_name: str) -> List[str]:
    """Files next to the ROM named `<base>.<anything>`, one level only."""
    prefix = f"{base_name}."
    found = []
    try:
        with os.scandir(source_dir) as it:
            for entry in it:
                if entry.name == exclude_name or not entry.name.startswith(prefix):
                    continue
                if entry.is_file():
                    found.append(entry.path)
    except OSError as exc:
        log.warning("Could not scan %s for companion files: %s", source_dir, exc)
    return sorted(found)


def link_companions(source_dir: str, base_name: str, exclude_name: str, cache_dir: str) -> List[str]:
    """
    Symlink companion files into the cache directory.

    Existing names in the cache are left untouched, so running this twice
    is a no-op. Failures are logged and skipped.

    Returns:
        Paths of the links created by this call
    """
    log.info("Linking companion files...")
    created = []
    for path in find_companions(source_dir, base_name, exclude_name):
        target = os.path.join(cache_dir, os.path.basename(path))
        if os.path.lexists(target):
            continue
        try:
            os.symlink(os.path.realpath(path), target)
        except OSError as exc:
            log.warning("Could not link companion %s: %s", path, exc)
            continue
        created.append(target)
    if created:
        log.info("Linked %d companion file(s)", len(created))
    return created
