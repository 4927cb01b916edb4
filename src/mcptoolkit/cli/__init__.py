"""
mcptoolkit CLI - Command Line Interface
"""

from .main import cli, setup_logging

__all__ = ["cli", "setup_logging"]
