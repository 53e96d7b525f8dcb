"""TeamTrack - shared task tracker with daily progress updates."""

__version__ = "1.0.0"
