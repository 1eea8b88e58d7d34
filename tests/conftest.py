import os
import subprocess
from copy import deepcopy

import py7zr
import pytest

from romrunner.errors import ExtractionFailure
from romrunner.models import ArchiveEntry
from romrunner.settings import DEFAULT_SETTINGS


class FakeArchiver:
    """In-memory stand-in for the 7z tool"""

    executable = '7z'

    def __init__(self, files=None, dirs=(), available=True, fail=False):
        self.files = dict(files or {})
        self.dirs = list(dirs)
        self._available = available
        self.fail = fail
        self.extract_calls = []
        self.tree_calls = []

    def available(self):
        return self._available

    def list_entries(self, archive):
        entries = [ArchiveEntry(path=d, size=None, is_directory=True) for d in self.dirs]
        entries += [ArchiveEntry(path=p, size=len(data)) for p, data in self.files.items()]
        return entries

    def entry_size(self, archive, entry_path):
        data = self.files.get(entry_path)
        return None if data is None else len(data)

    def extract_entry(self, archive, entry_path, dest):
        self.extract_calls.append(entry_path)
        data = self.files[entry_path]
        with open(dest, 'wb') as f:
            f.write(data[:len(data) // 2] if self.fail else data)
        if self.fail:
            raise ExtractionFailure(f"Extraction of '{entry_path}' failed (exit 2)")

    def _write_members(self, dest_root, prefix):
        for path, data in self.files.items():
            if prefix and not path.startswith(prefix):
                continue
            out = os.path.join(dest_root, path)
            os.makedirs(os.path.dirname(out), exist_ok=True)
            with open(out, 'wb') as f:
                f.write(data)

    def extract_folder(self, archive, folder, dest_root):
        self.tree_calls.append(folder)
        self._write_members(dest_root, f"{folder}/")

    def extract_all(self, archive, dest):
        self.tree_calls.append(None)
        self._write_members(dest, '')


def corrupt_7z(tmp_path):
    """A 7z archive holding Foo.sfc whose trailing header bytes are inverted"""
    src = tmp_path / 'Foo.sfc'
    src.write_bytes(b'rom' * 64)
    archive = tmp_path / 'Foo.7z'
    with py7zr.SevenZipFile(archive, 'w') as sz:
        sz.write(src, 'Foo.sfc')
    os.remove(src)
    data = bytearray(archive.read_bytes())
    for i in range(len(data) - 48, len(data)):
        data[i] ^= 0xFF
    archive.write_bytes(bytes(data))
    return archive


class RecordingRunner:
    """subprocess.run replacement returning scripted exit codes"""

    def __init__(self, handler=None):
        self.calls = []
        self.handler = handler or (lambda cmd: 0)

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        code = self.handler(list(cmd))
        return subprocess.CompletedProcess(cmd, code, stdout='', stderr='')


@pytest.fixture
def settings(tmp_path):
    cfg = deepcopy(DEFAULT_SETTINGS)
    cfg['cache_dir'] = str(tmp_path / 'cache')
    cfg['textures']['emulator_roots'] = [str(tmp_path / 'flatpak-retroarch'), str(tmp_path / 'retroarch')]
    cfg['scummvm']['config_candidates'] = [str(tmp_path / 'scummvm.ini')]
    return cfg


@pytest.fixture
def roms(tmp_path):
    path = tmp_path / 'roms'
    path.mkdir()
    return path
