"""
zigsync CLI module.

This module provides the command-line interface for zigsync.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
