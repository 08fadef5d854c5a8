"""
Entry point for running CellCanvas as a module.

Usage:
    python -m cellcanvas serve data.json --port 8050
"""

from cellcanvas.cli import app

if __name__ == "__main__":
    app()
