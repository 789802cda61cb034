"""CLI entry point - wrapper around the cli package

Run with ``python cli.py`` from the repository root.
"""

from cli.main import main

if __name__ == "__main__":
    main()
