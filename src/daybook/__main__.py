"""
Daybook CLI entrypoint.

Executed via:
  python -m daybook

Assumes dependencies are installed in an isolated environment.
"""

from daybook.cli.app import app

if __name__ == "__main__":
    app()
