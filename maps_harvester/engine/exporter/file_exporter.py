"""File based exporter writing JSON lines or CSV."""

from __future__ import annotations

import csv
import json
import re
from dataclasses import fields
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..models import PlaceRecord
from .base import BaseExporter

CSV_FIELDS = [f.name for f in fields(PlaceRecord) if f.name != "coordinates"] + [
    "latitude",
    "longitude",
]


class FileExporter(BaseExporter):
    """Write records to a per-run file under ``output_dir``."""

    def __init__(self, output_dir: Path, run_name: str, fmt: str, run_tag: str | None = None) -> None:
        if fmt not in {"json", "csv"}:
            raise ValueError(f"Unsupported file format: {fmt}")
        self.output_dir = output_dir
        self.run_name = run_name
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", run_name.strip()) or "run"
        filename = f"{slug}-{self.run_tag}.{self._extension}"
        self.path = self.output_dir / filename
        self._file = self.path.open("a", encoding="utf-8", newline="")
        self._csv_writer: Optional[csv.DictWriter] = None
        self.count = 0

    @property
    def _extension(self) -> str:
        return "jsonl" if self.format == "json" else "csv"

    def emit(self, record: PlaceRecord) -> None:
        payload = record.to_dict()
        if self.format == "json":
            json.dump(payload, self._file, ensure_ascii=False)
            self._file.write("\n")
        else:
            if not self._csv_writer:
                self._csv_writer = csv.DictWriter(self._file, fieldnames=CSV_FIELDS)
                self._csv_writer.writeheader()
            self._csv_writer.writerow(payload)
        self.count += 1

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        self._file.close()


__all__ = ["FileExporter"]
