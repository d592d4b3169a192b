#!/usr/bin/env python3
"""
keyhabit main entry point for running as a module: python3 -m keyhabit
"""

import sys
from keyhabit.cli import main

if __name__ == '__main__':
    sys.exit(main())
