"""Polls HTTP APIs for new items and alerts over SMS and email."""

__version__ = "0.1.0"
