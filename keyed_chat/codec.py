"""JSON (de)serialisation of session logs."""

from __future__ import annotations

import json

from .model import EncryptedRecord, SessionLog

COMPACT_JSON_SEPARATORS = (",", ":")


class CorruptLogError(ValueError):
    """Raised when stored session log bytes cannot be parsed."""


def encode_log(log: SessionLog) -> bytes:
    """Serialise *log* to the ``{"messages": [...]}`` document."""

    document = {
        "messages": [
            {"message": record.message, "timestamp": record.timestamp}
            for record in log.records
        ]
    }
    return json.dumps(document, separators=COMPACT_JSON_SEPARATORS).encode("utf-8")


def decode_log(data: bytes) -> SessionLog:
    """Parse bytes produced by :func:`encode_log` back into a :class:`SessionLog`."""

    try:
        document = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptLogError(f"Session log is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise CorruptLogError("Session log root must be a JSON object")
    entries = document.get("messages")
    if not isinstance(entries, list):
        raise CorruptLogError("Session log is missing a 'messages' list")

    records = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise CorruptLogError(f"Record {index} is not an object")
        message = entry.get("message")
        timestamp = entry.get("timestamp")
        if not isinstance(message, str) or not isinstance(timestamp, str):
            raise CorruptLogError(f"Record {index} lacks string 'message'/'timestamp' fields")
        records.append(EncryptedRecord(message=message, timestamp=timestamp))
    return SessionLog(records=records)
