"""Sink SPI and implementations."""

from .base import BaseExporter
from .file_exporter import FileExporter
from .mongo_exporter import MongoExporter
from .sqlite_exporter import SQLiteExporter

__all__ = ["BaseExporter", "FileExporter", "MongoExporter", "SQLiteExporter"]
