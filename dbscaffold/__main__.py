# File: dbscaffold/__main__.py
"""
dbscaffold — Module entry point.

Allows running the tool directly via::

    python -m dbscaffold all --config dbscaffold.yaml

This module simply delegates to the CLI entry point defined in ``dbscaffold.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from dbscaffold.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
