"""MongoDB exporter implementation."""

from __future__ import annotations

from pymongo import MongoClient

from ..models import PlaceRecord
from .base import BaseExporter


class MongoExporter(BaseExporter):
    """Write places into a MongoDB collection."""

    def __init__(self, uri: str, database: str, collection: str) -> None:
        self.client = MongoClient(uri)
        self.collection = self.client[database][collection]

    def emit(self, record: PlaceRecord) -> None:
        document = record.to_dict()
        document["dedup_key"] = record.dedup_key
        self.collection.insert_one(document)

    def flush(self) -> None:
        # MongoDB writes are immediate in default write concern
        return

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoExporter"]
