#!/usr/bin/env python3
"""
Hierarchy targeting entry point.

Run with: python -m hierarchy_targeting [command] [options]
"""

from .cli import main

if __name__ == "__main__":
    main()
