"""
P/ECE SDK Command-Line Interface
================================

This package provides the command-line tool for the P/ECE SDK:

- **piecelink**: USB extraction tool (ls, download, backup,
  screenshot, dump, info)

The tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["piecelink"]
