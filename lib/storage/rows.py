"""Row shape shared by the sinks: TRACK_EXPORT_FIELDS in order, provenance as JSON text."""
from __future__ import annotations

import json
from typing import Any, Dict

from lib.extraction.models import TrackRecord
from lib.extraction.registry import TRACK_EXPORT_FIELDS

JSON_FIELDS = ("source_details", "field_validation_status")
_TEXT_FIELDS = ("title", "artist", "album", "url", "duration", "image_url", "release_date", "genre", "external_id")


def record_to_row(record: TrackRecord) -> Dict[str, Any]:
    row = {name: getattr(record, name) for name in TRACK_EXPORT_FIELDS}
    for name in JSON_FIELDS:
        row[name] = json.dumps(row[name] or {}, ensure_ascii=False, sort_keys=True, default=str)
    return row


def row_to_record(row: Dict[str, Any]) -> TrackRecord:
    """Inverse of record_to_row for rows read back from a sink (CSV gives strings, SQLite ints)."""
    data = {name: row.get(name) for name in TRACK_EXPORT_FIELDS}
    for name in JSON_FIELDS:
        data[name] = json.loads(data[name]) if data[name] else {}
    for name in ("track_number", "playlist_position"):
        data[name] = int(data[name]) if data[name] not in (None, "") else None
    explicit = data["explicit"]
    if isinstance(explicit, str):
        explicit = {"true": True, "1": True, "false": False, "0": False}.get(explicit.lower())
    data["explicit"] = None if explicit is None else bool(explicit)
    data["validated"] = str(data["validated"]).lower() in ("1", "true")
    data["confidence"] = float(data["confidence"] or 0.0)
    for name in _TEXT_FIELDS:
        data[name] = data[name] or ""
    return TrackRecord(**data)
