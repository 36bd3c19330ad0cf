"""Daysong worker: turns song specs into generated audio."""

__version__ = "0.1.0"
