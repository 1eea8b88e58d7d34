"""
MSU-1 style multi-track audio for SNES ROMs.

Tracks live next to the archive as `<base>-<suffix>.pcm`. When only
compressed sources (`.wv`, `.flac`) are distributed, each one is converted
to raw PCM in the cache by its own ffmpeg process, all running at once.
"""

import glob
import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from .errors import ConversionFailure
from .models import AudioTrack, ConversionOutcome
from .settings import extensions, tool

log = logging.getLogger(__name__)


def find_tracks(source_dir: str, base_name: str, extension: str) -> List[AudioTrack]:
    """`<base>-<suffix><extension>` files in `source_dir`, sorted by name."""
    pattern = os.path.join(glob.escape(source_dir), f"{glob.escape(base_name)}-*{extension}")
    tracks = []
    for path in sorted(glob.glob(pattern)):
        stem = os.path.splitext(os.path.basename(path))[0]
        suffix = stem[len(base_name) + 1:]
        if suffix and os.path.isfile(path):
            tracks.append(AudioTrack(base_name=base_name, suffix=suffix, path=path))
    return tracks


class MultiTrackAudioPreparer:
    """Links or converts audio tracks into the cache directory"""

    def __init__(self, settings: Dict[str, Any], cache_dir: str, runner: Optional[Callable] = None):
        audio = settings.get("audio", {})
        self.cache_dir = cache_dir
        self.marker_extension = audio.get("marker_extension", ".msu")
        self.source_formats = extensions(audio.get("source_formats"))
        self.max_workers = int(audio.get("max_workers") or 0)
        self.sample_rate = int(audio.get("sample_rate", 44100))
        self.channels = int(audio.get("channels", 2))
        self.ffmpeg = tool(settings, "ffmpeg")
        self._run = runner or subprocess.run

    def has_marker(self, source_dir: str, base_name: str) -> bool:
        return os.path.isfile(os.path.join(source_dir, f"{base_name}{self.marker_extension}"))

    def link_pcm(self, tracks: List[AudioTrack]) -> List[ConversionOutcome]:
        outcomes = []
        for track in tracks:
            dest = os.path.join(self.cache_dir, track.pcm_name)
            if os.path.lexists(dest):
                outcomes.append(ConversionOutcome(track=track, output=dest, ok=True, skipped=True))
                continue
            try:
                os.symlink(os.path.realpath(track.path), dest)
            except OSError as exc:
                log.warning("Could not link track %s: %s", track.path, exc)
                outcomes.append(ConversionOutcome(track=track, output=dest, ok=False, error=str(exc)))
                continue
            outcomes.append(ConversionOutcome(track=track, output=dest, ok=True))
        return outcomes

    def _convert_cmd(self, src: str, dest: str) -> List[str]:
        return [
            self.ffmpeg, "-nostdin", "-hide_banner", "-loglevel", "error", "-y",
            "-i", src,
            "-f", "s16le", "-acodec", "pcm_s16le",
            "-ac", str(self.channels), "-ar", str(self.sample_rate),
            dest,
        ]

    def convert(self, track: AudioTrack) -> ConversionOutcome:
        """
        Convert one source track to raw PCM in the cache.

        Never raises: a failure removes the partial output and is reported
        in the returned outcome.
        """
        dest = os.path.join(self.cache_dir, track.pcm_name)
        if os.path.exists(dest):
            return ConversionOutcome(track=track, output=dest, ok=True, skipped=True)

        partial = f"{dest}.part"
        try:
            proc = self._run(
                self._convert_cmd(track.path, partial),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
            )
            if proc.returncode != 0:
                raise ConversionFailure(f"ffmpeg exited {proc.returncode}")
            os.replace(partial, dest)
        except (ConversionFailure, OSError) as exc:
            if os.path.exists(partial):
                os.remove(partial)
            log.warning("Conversion failed for %s: %s", os.path.basename(track.path), exc)
            return ConversionOutcome(track=track, output=dest, ok=False, error=str(exc))
        return ConversionOutcome(track=track, output=dest, ok=True)

    def convert_all(self, tracks: List[AudioTrack]) -> List[ConversionOutcome]:
        """Convert every track concurrently and wait for all of them."""
        workers = self.max_workers or len(tracks)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="romrunner-audio") as executor:
            futures = [executor.submit(self.convert, track) for track in tracks]
        return [future.result() for future in futures]

    def prepare(self, source_dir: str, base_name: str) -> List[ConversionOutcome]:
        """
        Make the title's audio tracks available in the cache.

        Pre-rendered `.pcm` tracks always win and are only linked. Otherwise
        the first source format with any tracks is converted.
        """
        os.makedirs(self.cache_dir, exist_ok=True)

        pcm_tracks = find_tracks(source_dir, base_name, ".pcm")
        if pcm_tracks:
            log.info("Linking %d PCM track(s)", len(pcm_tracks))
            return self.link_pcm(pcm_tracks)

        for ext in self.source_formats:
            sources = find_tracks(source_dir, base_name, ext)
            if sources:
                break
        else:
            log.info("No audio tracks found for %s", base_name)
            return []

        log.info("Converting %d %s track(s) to PCM...", len(sources), ext)
        outcomes = self.convert_all(sources)
        failed = [o for o in outcomes if not o.ok]
        if failed:
            log.warning("%d of %d track(s) failed to convert", len(failed), len(outcomes))
        else:
            log.info("Audio tracks ready")
        return outcomes
