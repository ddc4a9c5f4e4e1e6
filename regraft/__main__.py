"""Entry point for running regraft as a module.

This module allows regraft to be run as a Python module using the -m flag:
    python -m regraft
"""

from . import cli

if __name__ == "__main__":
    cli._main()
