"""Dataset sink: accumulate records and export them to JSON or CSV."""

import csv
import json
import os
from typing import Any, Dict, Iterable, List, Optional

from catcrawl.config import OUTPUT_DIR
from catcrawl.logging_config import get_logger

__all__ = ["Dataset", "record_to_row"]

logger = get_logger("datasets")


def _to_dict(record: Any) -> Dict[str, Any]:
    if hasattr(record, "to_dict"):
        return record.to_dict()
    if isinstance(record, dict):
        return dict(record)
    raise TypeError(f"Unsupported record type: {type(record)}")


def record_to_row(record: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a record for CSV: nested lists/dicts become JSON strings."""
    row: Dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(value, (list, dict)):
            row[key] = json.dumps(value, ensure_ascii=False)
        elif value is None:
            row[key] = ""
        else:
            row[key] = value
    return row


class Dataset:
    """A named, append-only collection of records for one crawl run."""

    def __init__(self, name: str, output_dir: str = OUTPUT_DIR):
        self.name = name
        self.output_dir = output_dir
        self._records: List[Dict[str, Any]] = []

    def push_data(self, records: Iterable[Any]) -> int:
        """Append records (dataclasses with ``to_dict`` or dicts)."""
        added = [_to_dict(record) for record in records]
        self._records.extend(added)
        return len(added)

    @property
    def records(self) -> List[Dict[str, Any]]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def _path(self, key: Optional[str], extension: str) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, f"{key or self.name}.{extension}")

    def export_to_json(self, key: Optional[str] = None) -> str:
        """Write all records to ``<output_dir>/<key>.json``. Returns the path."""
        path = self._path(key, "json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._records, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Exported {len(self._records)} {self.name} records to {path}")
        return path

    def export_to_csv(self, key: Optional[str] = None) -> str:
        """Write all records to ``<output_dir>/<key>.csv``. Returns the path."""
        path = self._path(key, "csv")
        rows = [record_to_row(record) for record in self._records]

        # Union of keys, first-seen order
        fieldnames: List[str] = []
        for row in rows:
            for field in row:
                if field not in fieldnames:
                    fieldnames.append(field)

        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)
        logger.info(f"Exported {len(rows)} {self.name} records to {path}")
        return path

    def export(self, fmt: str = "json", key: Optional[str] = None) -> str:
        if fmt == "json":
            return self.export_to_json(key)
        if fmt == "csv":
            return self.export_to_csv(key)
        raise ValueError(f"Unsupported export format: {fmt}")
