"""Geo-tiled place harvester for map search results."""

__version__ = "0.1.0"
