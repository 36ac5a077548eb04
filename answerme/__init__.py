"""AI-assisted question generation and answer verification."""

__version__ = "0.1.0"
