"""
Main entry point for running the package as a module.

Usage:
    python -m webpgen index --library /srv/uploads
    python -m webpgen status --library /srv/uploads
    python -m webpgen run --library /srv/uploads
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
