"""Entry point for running qsnap_engine as a module.

Usage:
    python -m qsnap_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
