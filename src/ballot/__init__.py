"""Phase-gated plurality ballot engine."""

__version__ = "0.1.0"
