"""
Data models for the ROM runner
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional, Tuple


class InputKind(Enum):
    BUNDLE = auto()     # .scummvm pointer file
    ARCHIVE = auto()    # merged-set archive
    PLAIN = auto()      # launched as-is from the cache


class ContentCategory(Enum):
    N64 = auto()
    SNES = auto()
    OTHER = auto()


class MountState(Enum):
    UNMOUNTED = auto()
    MOUNTED_KERNEL = auto()
    MOUNTED_FUSE = auto()
    FAILED = auto()


@dataclass(frozen=True)
class RomRequest:
    """The ROM path as handed over by the frontend"""
    raw_path: str
    source_dir: str
    file_name: str
    base_name: str
    extension: str  # includes the dot, '' when the name has none

    @classmethod
    def from_path(cls, path: str) -> 'RomRequest':
        file_name = os.path.basename(path)
        base_name, extension = os.path.splitext(file_name)
        return cls(
            raw_path=path,
            source_dir=os.path.dirname(path) or '.',
            file_name=file_name,
            base_name=base_name,
            extension=extension,
        )

    def sibling(self, extension: str) -> str:
        """Path of a same-named file next to the request"""
        return os.path.join(self.source_dir, f"{self.base_name}{extension}")


@dataclass(frozen=True)
class ArchiveEntry:
    """One item inside an archive, in archive order"""
    path: str
    size: Optional[int] = None
    is_directory: bool = False

    @property
    def name(self) -> str:
        return self.path.rstrip('/').rsplit('/', 1)[-1]

    @property
    def stem(self) -> str:
        return os.path.splitext(self.path)[0]

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1]


@dataclass
class MountTarget:
    """A read-only texture image and where it gets mounted"""
    image_path: str
    mount_point: str
    state: MountState = MountState.UNMOUNTED

    @property
    def mounted(self) -> bool:
        return self.state in (MountState.MOUNTED_KERNEL, MountState.MOUNTED_FUSE)


@dataclass(frozen=True)
class AudioTrack:
    """A `<base>-<suffix>.<ext>` track file"""
    base_name: str
    suffix: str
    path: str

    @property
    def extension(self) -> str:
        return os.path.splitext(self.path)[1].lower()

    @property
    def pcm_name(self) -> str:
        return f"{self.base_name}-{self.suffix}.pcm"


@dataclass
class ConversionOutcome:
    """Result of one track conversion task"""
    track: AudioTrack
    output: str
    ok: bool
    skipped: bool = False
    error: str = ""


@dataclass(frozen=True)
class ResolutionState:
    """
    Resolution cursor threaded through the pipeline stages.

    Each stage returns a new state via `advance`; `launch_path` is what
    finally gets appended to the emulator command.
    """
    request: RomRequest
    kind: Optional[InputKind] = None
    content: ContentCategory = ContentCategory.OTHER
    entries: Tuple[ArchiveEntry, ...] = ()
    extracted_path: str = ""
    launch_path: str = ""
    mount: Optional[MountTarget] = None
    audio: Tuple[ConversionOutcome, ...] = field(default_factory=tuple)
    config_path: str = ""

    def advance(self, **changes) -> 'ResolutionState':
        return replace(self, **changes)
