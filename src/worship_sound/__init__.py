"""Worship Sound - spiritual music discovery and preview player.

This package provides tools for:
- Classifying tracks as worship/gospel/christian from their metadata
- Searching a public track API with spiritual query enhancement and fallback
- Streaming short track previews with transport controls
"""

__version__ = "0.1.0"
