"""Worship Sound command line app.

Discovers spiritual tracks from the Deezer search API and plays
their 30 second previews.
"""

__version__ = "0.1.0"
