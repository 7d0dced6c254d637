#!/usr/bin/env python3
"""
Library System Entry Point

Runs the command-line front end against the library file in the current
directory (or the one given with --root).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from core_library.cli import main


if __name__ == "__main__":
    main()
