"""
Command-line interface for the ROM runner
"""

import argparse
import logging
import sys

from . import __version__
from .monitor import setup_runtime_monitor
from .pipeline import Pipeline, run_pipeline
from .settings import DEFAULT_SETTINGS_PATH, apply_overrides, load_settings

log = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog='romrunner',
        description='Resolve a ROM (plain file, merged-set archive or ScummVM bundle) '
                    'into the cache and launch the emulator with it',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Everything after the runner options is the emulator command; its last
token is the ROM path.

Examples:
  %(prog)s flatpak run org.libretro.RetroArch -L snes9x_libretro.so "/roms/snes/Foo.7z"
  %(prog)s --dry-run retroarch -L mupen64plus_next_libretro.so "/roms/n64/Bar.7z"
  %(prog)s flatpak run org.scummvm.ScummVM "/roms/scummvm/Monkey Island.scummvm"
        '''
    )

    parser.add_argument(
        '--settings',
        type=str,
        default=DEFAULT_SETTINGS_PATH,
        help='Settings file (default: ~/.romrunner/settings.json)'
    )

    parser.add_argument(
        '--cache-dir',
        type=str,
        help='Override the extraction cache directory'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also append log output to this file'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log debug output'
    )

    parser.add_argument(
        '--no-lock',
        action='store_true',
        help='Do not serialize concurrent launches of the same title'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Prepare everything and print the emulator command instead of running it'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'command',
        nargs=argparse.REMAINDER,
        help='Emulator command followed by the ROM path'
    )

    return parser


def run_cli(args=None, *, launcher=None, pipeline=None):
    """Run the CLI"""
    parser = create_parser()
    ns = parser.parse_args(args)

    command = list(ns.command)
    if command and command[0] == '--':
        command = command[1:]

    settings = apply_overrides(
        load_settings(ns.settings),
        cache_dir=ns.cache_dir,
        log_file=ns.log_file,
        verbose=ns.verbose,
        no_lock=ns.no_lock,
    )
    log_cfg = settings.get('logging', {})
    setup_runtime_monitor(
        log_file=log_cfg.get('file') or None,
        file_enabled=bool(log_cfg.get('file_enabled')),
        verbose=bool(log_cfg.get('verbose')),
    )

    if len(command) < 2:
        log.error("Expected an emulator command followed by a ROM path")
        parser.print_usage(sys.stderr)
        return 1

    *emulator, rom_path = command
    pipeline = pipeline or Pipeline(settings)
    return run_pipeline(pipeline, emulator, rom_path, launcher=launcher, dry_run=ns.dry_run)
