"""Queued transcription of large media resources."""

__version__ = "1.0.0"
