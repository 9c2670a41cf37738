"""Round-trip and corruption tests for the session log codec."""

from __future__ import annotations

import json

import pytest

from keyed_chat.codec import CorruptLogError, decode_log, encode_log
from keyed_chat.model import EncryptedRecord, SessionLog


def _log(count: int) -> SessionLog:
    return SessionLog(
        records=[
            EncryptedRecord(message=f"blob-{index}==", timestamp=f"2024-01-01 00:{index // 60 % 60:02d}:{index % 60:02d}")
            for index in range(count)
        ]
    )


@pytest.mark.parametrize("count", [0, 1, 1000])
def test_decode_encode_round_trip(count: int) -> None:
    log = _log(count)

    assert decode_log(encode_log(log)) == log


def test_encoded_layout_matches_session_file_format() -> None:
    log = SessionLog([EncryptedRecord(message="abc=", timestamp="2024-05-06 07:08:09")])

    document = json.loads(encode_log(log))

    assert document == {"messages": [{"message": "abc=", "timestamp": "2024-05-06 07:08:09"}]}


def test_decode_accepts_empty_session_file() -> None:
    assert decode_log(b'{"messages":[]}') == SessionLog()


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"{not json",
        b"\xff\xfe",
        b"[]",
        b'{"messages": {}}',
        b'{"other": []}',
        b'{"messages": ["abc"]}',
        b'{"messages": [{"message": "abc"}]}',
        b'{"messages": [{"message": 1, "timestamp": "2024-01-01 00:00:00"}]}',
    ],
)
def test_decode_rejects_corrupt_logs(data: bytes) -> None:
    with pytest.raises(CorruptLogError):
        decode_log(data)
