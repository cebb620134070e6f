"""
Main entry point for the Slack <-> IRC relay bridge.

Usage:
    python main.py --config config.json
"""

import sys

from slackirc.main import main

if __name__ == "__main__":
    sys.exit(main())
