"""Roofing estimate and measurement-report extraction service."""

__version__ = "0.1.0"
