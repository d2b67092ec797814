"""Main entry point for unmark package.

This module allows the package to be executed as:
    python -m unmark [args...]
"""

from .cli import main

if __name__ == "__main__":
    main()
