"""
Pipeline orchestrator.

Turns the ROM path a frontend hands over into a launchable file in the
cache, prepares the extras the emulator needs, then replaces this process
with the emulator.
"""

import logging
import os
import shlex
from typing import Any, Callable, Dict, List, Optional

from . import archive as archive_mod
from .archive import SevenZipArchiver
from .audio import MultiTrackAudioPreparer
from .cache import ExtractionCache, copy_if_newer
from .classifier import classify_input, detect_content
from .companions import link_companions
from .errors import MissingRequiredTool, RequiredSiblingMissing, RomRunnerError
from .models import ContentCategory, InputKind, ResolutionState, RomRequest
from .monitor import monitor_action
from .scummvm import ScummVMConfigMerger
from .settings import extensions, tool
from .textures import TexturePackMounter
from .utils import expand_path

log = logging.getLogger(__name__)


class Pipeline:
    """Resolves a ROM request and prepares its assets"""

    def __init__(self, settings: Dict[str, Any], *, archiver=None, cache=None,
                 mounter=None, audio=None, merger=None):
        self.settings = settings
        cache_dir = expand_path(settings.get("cache_dir"))
        self.archiver = archiver or SevenZipArchiver(tool(settings, "archiver"))
        self.cache = cache or ExtractionCache(cache_dir, self.archiver)
        self.mounter = mounter or TexturePackMounter(settings, self.cache.root)
        self.audio = audio or MultiTrackAudioPreparer(settings, self.cache.root)
        self.merger = merger or ScummVMConfigMerger(
            settings.get("scummvm", {}).get("config_candidates", []),
            crudini=tool(settings, "crudini"),
        )

    def check_required_tools(self) -> None:
        if not self.archiver.available():
            raise MissingRequiredTool(
                f"'{getattr(self.archiver, 'executable', 'archive tool')}' is required but not installed"
            )

    # ── stages ───────────────────────────────────────────────

    def resolve(self, rom_path: str) -> ResolutionState:
        """
        Run every stage for `rom_path`.

        Raises:
            RomRunnerError: a fatal error; nothing should be launched
        """
        request = RomRequest.from_path(rom_path)
        state = ResolutionState(request=request, kind=classify_input(request, self.settings))
        self.cache.ensure_root()

        stages = {
            InputKind.BUNDLE: self._resolve_bundle,
            InputKind.ARCHIVE: self._resolve_archive,
            InputKind.PLAIN: self._resolve_plain,
        }
        state = stages[state.kind](state)
        return self._prepare_assets(state)

    def _resolve_bundle(self, state: ResolutionState) -> ResolutionState:
        request = state.request
        monitor_action(f"Detected {request.extension} file")

        archive_path = self._bundle_archive(request)
        entries = self.archiver.list_entries(archive_path)
        if archive_mod.has_folders(entries):
            folder = archive_mod.resolve_folder(entries, request.base_name)
        else:
            folder = None
        target_dir = self.cache.extract_bundle(archive_path, folder, request.base_name)

        log.info("Copying %s file to extracted folder", request.extension)
        launch_path = copy_if_newer(request.raw_path, target_dir)

        state = state.advance(
            entries=tuple(entries),
            extracted_path=target_dir,
            launch_path=launch_path,
        )

        scummvm = self.settings.get("scummvm", {})
        fragment = request.sibling(scummvm.get("fragment_extension", ".ini"))
        if scummvm.get("enabled", True) and os.path.isfile(fragment):
            log.info("Found custom game settings: %s", fragment)
            config_path = self._optional(
                "game settings", self.merger.merge, launch_path, fragment, target_dir
            )
            if config_path:
                state = state.advance(config_path=config_path)
        return state

    def _bundle_archive(self, request: RomRequest) -> str:
        for ext in extensions(self.settings.get("archive_extensions")):
            candidate = request.sibling(ext)
            if os.path.isfile(candidate):
                return candidate
        raise RequiredSiblingMissing(f"Required archive not found: {request.sibling('.7z')}")

    def _resolve_archive(self, state: ResolutionState) -> ResolutionState:
        request = state.request
        monitor_action(f"Detected archive: {request.raw_path}")

        entries = self.archiver.list_entries(request.raw_path)
        entry = archive_mod.resolve_entry(entries, request.base_name)
        dest = self.cache.path_for(archive_mod.cache_name_for(entry, request.base_name))
        self.cache.ensure_extracted(request.raw_path, entry.path, dest, expected_size=entry.size)

        link_companions(request.source_dir, request.base_name, request.file_name, self.cache.root)
        return state.advance(
            entries=tuple(entries),
            content=detect_content((e.path for e in entries if not e.is_directory), self.settings),
            extracted_path=dest,
            launch_path=dest,
        )

    def _resolve_plain(self, state: ResolutionState) -> ResolutionState:
        request = state.request
        dest = self.cache.copy_plain(request.raw_path)
        link_companions(request.source_dir, request.base_name, request.file_name, self.cache.root)
        return state.advance(
            content=detect_content([request.file_name], self.settings),
            extracted_path=dest,
            launch_path=dest,
        )

    def _prepare_assets(self, state: ResolutionState) -> ResolutionState:
        request = state.request
        if state.content is ContentCategory.N64 and self.settings.get("textures", {}).get("enabled", True):
            mount = self._optional("texture pack", self.mounter.prepare, request.source_dir)
            if mount is not None and mount.mounted:
                state = state.advance(mount=mount)

        elif state.content is ContentCategory.SNES and self.settings.get("audio", {}).get("enabled", True):
            if self.audio.has_marker(request.source_dir, request.base_name):
                outcomes = self._optional(
                    "audio tracks", self.audio.prepare, request.source_dir, request.base_name
                )
                if outcomes:
                    state = state.advance(audio=tuple(outcomes))
        return state

    def _optional(self, feature: str, func: Callable, *args):
        """Run an optional feature; its failures only disable that feature."""
        try:
            return func(*args)
        except RomRunnerError as exc:
            if exc.fatal:
                raise
            log.warning("Skipping %s: %s", feature, exc)
        except OSError as exc:
            log.warning("Skipping %s: %s", feature, exc)
        return None


def exec_emulator(command: List[str], rom_path: str) -> int:
    """Replace this process with the emulator. Only returns on failure."""
    argv = [*command, rom_path]
    log.info("Launching emulator...")
    log.debug("exec: %s", shlex.join(argv))
    for handler in logging.getLogger("romrunner").handlers:
        handler.flush()
    try:
        os.execvp(argv[0], argv)
    except OSError as exc:
        log.error("Failed to launch %s: %s", argv[0], exc)
    return 1


def run_pipeline(pipeline: Pipeline, command: List[str], rom_path: str, *,
                 launcher: Optional[Callable[[List[str], str], int]] = None,
                 dry_run: bool = False) -> int:
    """
    Resolve `rom_path` and hand it to the emulator command.

    Returns:
        0 on success (including skipped extras), 1 on a fatal error,
        otherwise whatever the launcher returns
    """
    launcher = launcher or exec_emulator
    locking = pipeline.settings.get("locking", {}).get("enabled", True)
    try:
        pipeline.check_required_tools()
        request = RomRequest.from_path(rom_path)
        pipeline.cache.ensure_root()
        with pipeline.cache.title_lock(request.base_name, enabled=locking):
            state = pipeline.resolve(rom_path)
    except RomRunnerError as exc:
        log.error("%s", exc)
        return 1
    except OSError as exc:
        log.error("Could not prepare %s: %s", rom_path, exc)
        return 1

    if dry_run:
        print(shlex.join([*command, state.launch_path]))
        return 0
    return launcher(command, state.launch_path)
