"""Procedural ASCII animation generators and raster-to-character conversion."""

__version__ = "0.1.0"
