#!/usr/bin/env python3
"""
Entry point for running the interface generator package directly.
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
