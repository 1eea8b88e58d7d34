"""
Per-game ScummVM settings.

A `<base>.ini` fragment next to a `.scummvm` descriptor holds one section
keyed by the game id. Its keys are copied into ScummVM's global
`scummvm.ini` with crudini, after pointing its `path` at the extracted
game folder.
"""

import logging
import os
import shutil
import subprocess
from typing import Callable, List, Optional, Sequence

from .errors import ConfigMergeFailure, OptionalToolUnavailable
from .utils import expand_path, first_success

log = logging.getLogger(__name__)


def read_game_id(descriptor: str) -> str:
    """Game id from the first line of a `.scummvm` file, brackets removed."""
    with open(descriptor, 'r', encoding='utf-8', errors='replace') as f:
        first_line = f.readline()
    return first_line.strip().replace('[', '').replace(']', '').strip()


def find_config_file(candidates: Sequence[str]) -> Optional[str]:
    """First existing path among the candidates."""
    found = first_success(
        (path, lambda path=path: expand_path(path) if os.path.isfile(expand_path(path)) else None)
        for path in candidates
    )
    return found[1] if found else None


class ScummVMConfigMerger:
    """Copies a game's settings fragment into the global scummvm.ini"""

    def __init__(self, candidates: Sequence[str], crudini: str = 'crudini',
                 runner: Optional[Callable] = None):
        self.candidates = list(candidates)
        self.crudini = crudini
        self._run = runner or subprocess.run

    def available(self) -> bool:
        return shutil.which(self.crudini) is not None

    def _crudini(self, *args: str) -> str:
        cmd = [self.crudini, *args]
        try:
            proc = self._run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
            )
        except OSError as exc:
            raise ConfigMergeFailure(f"crudini failed to start: {exc}") from exc
        if proc.returncode != 0:
            raise ConfigMergeFailure(
                f"crudini {' '.join(args[:1])} failed (exit {proc.returncode}): {(proc.stderr or '').strip()}"
            )
        return proc.stdout or ''

    def section_keys(self, ini_path: str, section: str) -> List[str]:
        return [line.strip() for line in self._crudini('--get', ini_path, section).splitlines() if line.strip()]

    def get_value(self, ini_path: str, section: str, key: str) -> str:
        return self._crudini('--get', ini_path, section, key).rstrip('\n')

    def set_value(self, ini_path: str, section: str, key: str, value: str) -> None:
        self._crudini('--set', ini_path, section, key, value)

    def merge(self, descriptor: str, fragment: str, target_dir: str) -> Optional[str]:
        """
        Apply `fragment` to the global configuration.

        Returns:
            Path of the configuration file written, or None when skipped

        Raises:
            OptionalToolUnavailable: crudini is not installed
            ConfigMergeFailure: a crudini call failed
        """
        if not self.available():
            raise OptionalToolUnavailable(f"{self.crudini} not installed, game settings not applied")

        game_id = read_game_id(descriptor)
        if not game_id:
            log.warning("No game id on the first line of %s, settings not applied", descriptor)
            return None
        log.info("Detected gameid section: [%s]", game_id)

        config_path = find_config_file(self.candidates)
        if config_path is None:
            log.warning("No scummvm.ini found to apply settings")
            return None
        log.info("Found scummvm.ini at: %s", config_path)

        self.set_value(fragment, game_id, 'path', target_dir)
        for key in self.section_keys(fragment, game_id):
            self.set_value(config_path, game_id, key, self.get_value(fragment, game_id, key))

        log.info("Game settings for [%s] applied", game_id)
        return config_path
