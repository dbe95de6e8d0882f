"""Kaunta: privacy-preserving web analytics core."""

__version__ = "0.1.0"
