"""
rtvm_cli - command-line interface for rtvm.

Thin glue over the rtvm core: argument parsing, output formatting and exit
codes live here, everything else is in the rtvm package.
"""

from rtvm_cli.cli import main

__all__ = ["main"]
