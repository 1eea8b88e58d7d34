"""
Archive listing and entry resolution.

Listing tries py7zr's structured listing first and falls back to the
`7z l -ba` text output. Extraction always goes through the 7z binary.
"""

import logging
import shutil
import subprocess
from typing import Callable, List, Optional, Sequence

import py7zr

from .errors import EntryNotFound, ExtractionFailure
from .models import ArchiveEntry
from .utils import first_success, strip_variant

log = logging.getLogger(__name__)

# Fixed columns of a `7z l -ba` line:
# "2024-01-02 03:04:05 ....A       524288       262144  Name.sfc"
ATTR_COLUMNS = slice(20, 25)
SIZE_COLUMNS = slice(26, 38)
NAME_COLUMN = 53


def parse_listing(output: str) -> List[ArchiveEntry]:
    """
    Parse `7z l -ba` output into entries, in archive order.

    The name starts at a fixed column; attributes and the unpacked size sit
    in fixed-width columns before it. A blank size field gives `None`.
    """
    entries = []
    for line in output.splitlines():
        if len(line) <= NAME_COLUMN:
            continue
        name = line[NAME_COLUMN:].lstrip()
        if not name:
            continue
        attrs = line[ATTR_COLUMNS]
        size_field = line[SIZE_COLUMNS].strip()
        entries.append(ArchiveEntry(
            path=name.replace('\\', '/').rstrip('/'),
            size=int(size_field) if size_field.isdigit() else None,
            is_directory=attrs.startswith('D'),
        ))
    return entries


class SevenZipArchiver:
    """Lists and extracts archives with py7zr and the 7z command-line tool"""

    def __init__(self, executable: str = '7z', runner: Optional[Callable] = None):
        self.executable = executable
        self._run = runner or subprocess.run

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    # ── listing ──────────────────────────────────────────────

    def list_entries(self, archive: str) -> List[ArchiveEntry]:
        """List archive entries; raises ExtractionFailure if nothing can read it."""
        found = first_success([
            ('py7zr', lambda: self._list_structured(archive)),
            ('7z-cli', lambda: self._list_cli(archive)),
        ])
        if found is None:
            raise ExtractionFailure(f"Could not list archive (unreadable or empty): {archive}")
        label, entries = found
        log.debug("Listed %d entries from %s via %s", len(entries), archive, label)
        return entries

    def _list_structured(self, archive: str) -> Optional[List[ArchiveEntry]]:
        try:
            with py7zr.SevenZipFile(archive, mode='r') as sz:
                infos = sz.list()
        except Exception as exc:
            log.debug("py7zr cannot list %s: %s: %s", archive, type(exc).__name__, exc)
            return None
        return [
            ArchiveEntry(
                path=info.filename.rstrip('/'),
                size=None if info.is_directory else info.uncompressed,
                is_directory=info.is_directory,
            )
            for info in infos
        ]

    def _list_cli(self, archive: str) -> Optional[List[ArchiveEntry]]:
        try:
            proc = self._run(
                [self.executable, 'l', '-ba', archive],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding='utf-8',
                errors='surrogateescape',
            )
        except OSError as exc:
            log.debug("7z listing failed for %s: %s", archive, exc)
            return None
        if proc.returncode != 0:
            log.debug("7z listing exited %s for %s", proc.returncode, archive)
            return None
        return parse_listing(proc.stdout)

    def entry_size(self, archive: str, entry_path: str) -> Optional[int]:
        """Unpacked size the archive declares for an entry"""
        try:
            entries = self.list_entries(archive)
        except ExtractionFailure:
            return None
        for entry in entries:
            if entry.path == entry_path and not entry.is_directory:
                return entry.size
        return None

    # ── extraction ───────────────────────────────────────────

    def extract_entry(self, archive: str, entry_path: str, dest: str) -> None:
        """Stream a single entry to `dest`."""
        cmd = [self.executable, 'e', '-y', '-spd', '-so', archive, entry_path]
        try:
            with open(dest, 'wb') as out:
                proc = self._run(cmd, stdout=out, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise ExtractionFailure(f"Extraction of '{entry_path}' failed: {exc}") from exc
        if proc.returncode != 0:
            raise ExtractionFailure(
                f"Extraction of '{entry_path}' failed (exit {proc.returncode}): {_stderr_text(proc)}"
            )

    def extract_folder(self, archive: str, folder: str, dest_root: str) -> None:
        """Extract one top-level folder, keeping its path, under `dest_root`."""
        self._extract_tree(archive, dest_root, [folder])

    def extract_all(self, archive: str, dest: str) -> None:
        self._extract_tree(archive, dest, [])

    def _extract_tree(self, archive: str, dest: str, members: List[str]) -> None:
        cmd = [self.executable, 'x', '-y', archive, f'-o{dest}', *members]
        try:
            proc = self._run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise ExtractionFailure(f"Extraction of {archive} failed: {exc}") from exc
        if proc.returncode != 0:
            raise ExtractionFailure(
                f"Extraction of {archive} failed (exit {proc.returncode}): {_stderr_text(proc)}"
            )


def _stderr_text(proc) -> str:
    err = getattr(proc, 'stderr', b'') or b''
    if isinstance(err, bytes):
        err = err.decode('utf-8', errors='replace')
    return err.strip()


# ── resolution ───────────────────────────────────────────────

def _match_file(entries: Sequence[ArchiveEntry], name: str) -> Optional[ArchiveEntry]:
    for entry in entries:
        if not entry.is_directory and entry.stem == name:
            return entry
    return None


def _match_folder(entries: Sequence[ArchiveEntry], name: str) -> Optional[str]:
    prefix = f"{name}/"
    for entry in entries:
        if entry.path == name and entry.is_directory:
            return name
        if entry.path.startswith(prefix):
            return name
    return None


def _resolve(entries, target_base, matcher):
    attempts = [('exact', lambda: matcher(entries, target_base))]
    prefix = strip_variant(target_base)
    if prefix:
        attempts.append(('prefix', lambda: matcher(entries, prefix)))
    found = first_success(attempts)
    if found is None:
        return None
    label, match = found
    if label == 'prefix':
        log.info("No exact match for '%s', using prefix '%s'", target_base, prefix)
    return match


def resolve_entry(entries: Sequence[ArchiveEntry], target_base: str) -> ArchiveEntry:
    """
    Pick the entry to launch for `target_base`.

    1. First file whose path minus its extension equals `target_base`.
    2. If `target_base` contains `__`, the same search with the part before it.

    Raises:
        EntryNotFound: neither step matched
    """
    match = _resolve(entries, target_base, _match_file)
    if match is None:
        raise EntryNotFound(f"No match found inside archive for '{target_base}'")
    return match


def resolve_folder(entries: Sequence[ArchiveEntry], target_base: str) -> str:
    """Same two-step match as `resolve_entry`, against `name/` folders."""
    match = _resolve(entries, target_base, _match_folder)
    if match is None:
        raise EntryNotFound(f"No folder found inside archive for '{target_base}'")
    return match


def cache_name_for(entry: ArchiveEntry, target_base: str) -> str:
    """File name an entry is cached under: the requested base plus the entry's extension."""
    return f"{target_base}{entry.extension}"


def has_folders(entries: Sequence[ArchiveEntry]) -> bool:
    return any(e.is_directory or '/' in e.path for e in entries)
