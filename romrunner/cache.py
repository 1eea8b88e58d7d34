"""
Extraction cache - materializes archive entries under a shared directory.

A cached file is fresh when its size equals the size the archive declares
for the entry. Nothing is ever evicted here; only partial outputs of a
failed extraction are removed.
"""

import fcntl
import logging
import os
import re
import shutil
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import ExtractionFailure
from .shared_config import BUNDLE_CACHE_SUBDIR, LOCKS_SUBDIR
from .utils import format_size

log = logging.getLogger(__name__)

_LOCK_NAME_RE = re.compile(r'[^A-Za-z0-9._-]+')


class ExtractionCache:
    """Shared cache directory keyed by file basename"""

    def __init__(self, root: str, archiver):
        self.root = root
        self.archiver = archiver

    def ensure_root(self) -> None:
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, name: str) -> str:
        return os.path.join(self.root, os.path.basename(name))

    def bundle_dir(self, folder: str) -> str:
        return os.path.join(self.root, BUNDLE_CACHE_SUBDIR, folder)

    def is_fresh(self, archive: str, entry_path: str, dest: str,
                 expected_size: Optional[int] = None) -> bool:
        """True when `dest` exists with the size the archive declares"""
        if not os.path.isfile(dest):
            return False
        if expected_size is None:
            expected_size = self.archiver.entry_size(archive, entry_path)
        if expected_size is None:
            log.info("Size of '%s' unknown, forcing extraction", entry_path)
            return False
        return os.path.getsize(dest) == expected_size

    def ensure_extracted(self, archive: str, entry_path: str, dest: str,
                         expected_size: Optional[int] = None) -> str:
        """
        Extract one entry to `dest` unless a fresh copy is already there.

        Args:
            archive: Archive path
            entry_path: Path of the entry inside the archive
            dest: Output file
            expected_size: Size from a listing already at hand; queried when None

        Returns:
            `dest`

        Raises:
            ExtractionFailure: the archive tool failed; partial output is removed
        """
        self.ensure_root()
        if self.is_fresh(archive, entry_path, dest, expected_size):
            log.info("Archive entry already extracted, skipping: %s", dest)
            return dest

        log.info("Extracting '%s' to '%s'...", entry_path, dest)
        try:
            self.archiver.extract_entry(archive, entry_path, dest)
        except ExtractionFailure:
            _remove_quietly(dest)
            raise
        log.info("Extracted %s", format_size(os.path.getsize(dest)))
        return dest

    def copy_plain(self, src: str) -> str:
        """Copy a non-archive ROM into the cache root."""
        if not os.path.isfile(src):
            raise ExtractionFailure(f"ROM not found: {src}")
        self.ensure_root()
        dest = self.path_for(src)
        if os.path.isfile(dest):
            src_stat = os.stat(src)
            dest_stat = os.stat(dest)
            if (src_stat.st_size == dest_stat.st_size
                    and int(src_stat.st_mtime) == int(dest_stat.st_mtime)):
                log.info("ROM already cached, skipping copy: %s", dest)
                return dest
        try:
            shutil.copy2(src, dest)
        except OSError as exc:
            _remove_quietly(dest)
            raise ExtractionFailure(f"Failed to copy ROM: {exc}") from exc
        return dest

    def extract_bundle(self, archive: str, folder: Optional[str], name: str) -> str:
        """
        Extract a bundle's folder under `<root>/scummvm/`.

        `folder` is the matched top-level folder inside the archive; when it
        is None the archive has no folders and everything is extracted into
        `<root>/scummvm/<name>`. A non-empty target directory is reused.
        """
        target = self.bundle_dir(folder or name)
        if os.path.isdir(target) and os.listdir(target):
            log.info("Archive already extracted, skipping extraction: %s", target)
            return target

        log.info("Extracting bundle to: %s", target)
        try:
            if folder:
                os.makedirs(os.path.dirname(target), exist_ok=True)
                self.archiver.extract_folder(archive, folder, os.path.dirname(target))
            else:
                os.makedirs(target, exist_ok=True)
                self.archiver.extract_all(archive, target)
        except ExtractionFailure:
            shutil.rmtree(target, ignore_errors=True)
            raise
        if not os.path.isdir(target):
            raise ExtractionFailure(f"Extraction produced no folder at {target}")
        return target

    @contextmanager
    def title_lock(self, base_name: str, enabled: bool = True) -> Iterator[None]:
        """Serialize concurrent launches of the same title."""
        if not enabled:
            yield
            return
        lock_dir = os.path.join(self.root, LOCKS_SUBDIR)
        os.makedirs(lock_dir, exist_ok=True)
        lock_path = os.path.join(lock_dir, _LOCK_NAME_RE.sub('_', base_name) + '.lock')
        with open(lock_path, 'w') as fh:
            try:
                fcntl.flock(fh, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                log.info("Waiting for another launch of '%s' to finish preparing", base_name)
                fcntl.flock(fh, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)


def copy_if_newer(src: str, dest_dir: str) -> str:
    """`cp -u`: copy into `dest_dir` unless the copy there is at least as new."""
    dest = os.path.join(dest_dir, os.path.basename(src))
    if os.path.exists(dest) and os.path.getmtime(dest) >= os.path.getmtime(src):
        return dest
    try:
        shutil.copy2(src, dest)
    except OSError as exc:
        raise ExtractionFailure(f"Failed to copy {os.path.basename(src)}: {exc}") from exc
    return dest


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        log.warning("Could not remove partial output %s: %s", path, exc)
