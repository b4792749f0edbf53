#!/usr/bin/env python3
"""Standalone directory rankings runner script."""

from __future__ import annotations

import sys

from directory_rankings.cli import main

if __name__ == "__main__":
    sys.exit(main())
