#!/usr/bin/env python3
"""Main CLI entry point for stack runner."""

from .cloudformation import main as cli


if __name__ == "__main__":
    cli()
