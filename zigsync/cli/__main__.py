"""
Entry point for running zigsync CLI as a module.

Usage: python -m zigsync.cli [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
