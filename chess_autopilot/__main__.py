"""
Main entry point for running the autopilot.

Usage:
    python -m chess_autopilot --help
"""

import sys

from chess_autopilot.cli import main

if __name__ == "__main__":
    sys.exit(main())
