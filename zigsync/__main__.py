"""
Entry point for running zigsync as a module.

Usage: python -m zigsync [options]
"""

from zigsync.cli.parser import main

if __name__ == "__main__":
    main()
