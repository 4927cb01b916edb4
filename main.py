"""
mcptoolkit - stdio MCP servers as LangChain tools

Main entry point when running from a source checkout.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from mcptoolkit.cli import cli  # noqa: E402


if __name__ == "__main__":
    cli()
