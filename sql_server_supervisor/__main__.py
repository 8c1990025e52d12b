#!/usr/bin/env python3
"""
Entry point for running sql_server_supervisor as a module.
This file enables: python -m sql_server_supervisor
"""

import sys

from .main import main

if __name__ == '__main__':
    sys.exit(main())
