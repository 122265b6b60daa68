"""relpipe: tagged multi-platform release pipeline."""

__version__ = "0.1.0"
