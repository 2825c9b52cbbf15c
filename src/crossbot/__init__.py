"""Multi-platform chat bot with a source-agnostic command pipeline."""

__version__ = "0.1.0"
