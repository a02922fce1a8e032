#!/usr/bin/env python3
"""Main entry point for frameread package."""

import sys
from frameread.cli import main

if __name__ == "__main__":
    sys.exit(main())
