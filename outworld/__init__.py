"""Readers, decoders and software rendering for a classic polygon-based action adventure engine."""

__version__ = "0.1.0"