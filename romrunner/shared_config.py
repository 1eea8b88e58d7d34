"""
Well-known locations shared by the pipeline stages.
Paths under the user's home keep their `~` and are expanded at use time.
"""

import os

# App data directory for settings and logs
APP_DATA_DIR = os.path.expanduser('~/.romrunner')
SETTINGS_PATH = os.path.join(APP_DATA_DIR, 'settings.json')
LOGS_DIR = os.path.join(APP_DATA_DIR, 'logs')

# Shared extraction cache, keyed by file basename
DEFAULT_CACHE_DIR = '/tmp/rom_runner_wrapper'
BUNDLE_CACHE_SUBDIR = 'scummvm'
LOCKS_SUBDIR = '.locks'

# ScummVM global settings, first existing path wins
SCUMMVM_CONFIG_CANDIDATES = [
    '~/.config/retroarch/system/scummvm.ini',
    '~/.var/app/org.libretro.RetroArch/config/retroarch/system/scummvm.ini',
    '~/.var/app/org.scummvm.ScummVM/config/scummvm/scummvm.ini',
    '~/.config/scummvm/scummvm.ini',
    '~/snap/scummvm/current/.config/scummvm/scummvm.ini',
]

# RetroArch configuration roots: flatpak first, then native
RETROARCH_ROOTS = [
    '~/.var/app/org.libretro.RetroArch/config/retroarch',
    '~/.config/retroarch',
]

# Mupen64Plus-Next layout inside a RetroArch root
MUPEN_HIRES_SUBDIR = 'system/Mupen64plus/hires_texture'
MUPEN_CACHE_SUBDIR = 'system/Mupen64plus/cache'
