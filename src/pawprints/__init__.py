"""Pawprints: hybrid keyword + semantic search over a pet photo archive."""

__version__ = "0.1.0"
