"""Data structures shared by the codec, store and service layers.

Only :class:`EncryptedRecord` values are ever persisted; :class:`Message`
objects carry plaintext and exist solely on the response path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class EncryptedRecord:
    """One stored chat message: ciphertext blob plus its timestamp."""

    message: str
    timestamp: str


@dataclass
class SessionLog:
    """Ordered, append-only sequence of records for one session key."""

    records: List[EncryptedRecord] = field(default_factory=list)

    def append(self, record: EncryptedRecord) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class Message:
    """Decrypted chat entry returned to callers.

    ``message`` is ``None`` and ``undecryptable`` is ``True`` when the stored
    record could not be decrypted with the session key.
    """

    message: Optional[str]
    timestamp: str
    undecryptable: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message, "timestamp": self.timestamp}
        if self.undecryptable:
            data["undecryptable"] = True
        return data
