"""
romrunner - resolve merged-set ROM archives into a launchable file

Extracts the requested entry into a shared cache, links companion files,
and prepares texture packs, MSU-1 audio and ScummVM settings before handing
the ROM to the emulator.
"""

__version__ = '1.0.0'

from .models import (
    RomRequest, ArchiveEntry, MountTarget, AudioTrack, ConversionOutcome,
    InputKind, ContentCategory, MountState, ResolutionState,
)
from .archive import SevenZipArchiver, parse_listing, resolve_entry, resolve_folder
from .cache import ExtractionCache
from .companions import link_companions
from .textures import TexturePackMounter
from .audio import MultiTrackAudioPreparer
from .scummvm import ScummVMConfigMerger
from .pipeline import Pipeline, run_pipeline


__all__ = [
    'RomRequest',
    'ArchiveEntry',
    'MountTarget',
    'AudioTrack',
    'ConversionOutcome',
    'InputKind',
    'ContentCategory',
    'MountState',
    'ResolutionState',
    'SevenZipArchiver',
    'parse_listing',
    'resolve_entry',
    'resolve_folder',
    'ExtractionCache',
    'link_companions',
    'TexturePackMounter',
    'MultiTrackAudioPreparer',
    'ScummVMConfigMerger',
    'Pipeline',
    'run_pipeline',
]
