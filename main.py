#!/usr/bin/env python3
"""
ROM Runner
Resolves a ROM path into the extraction cache and launches the emulator.

Usage:
    python main.py [runner options] <emulator command...> <rom path>

For help: python main.py --help
"""

import sys
import os

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from romrunner.cli import run_cli


def main():
    """Main entry point"""
    sys.exit(run_cli())


if __name__ == '__main__':
    main()
