"""Vidremix: preview, export and split transforms for uploaded videos."""

__version__ = "0.1.0"
