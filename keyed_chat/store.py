"""Session store: encrypted, append-only message logs keyed by session key.

The session key is both the lookup identifier and the AES key for every
message in the session.  Mutating operations on a key are serialised by a
per-key lock so that concurrent sends on one session are never lost, while
sessions with different keys proceed independently.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List

from .codec import decode_log, encode_log
from .encryption import CipherEngine, DecryptionError
from .model import TIMESTAMP_FORMAT, EncryptedRecord, Message, SessionLog
from .storage import LogStorage

logger = logging.getLogger(__name__)

SESSION_KEY_BYTES = 16
_SESSION_KEY_PATTERN = re.compile(r"[0-9a-f]{32}")


class SessionNotFoundError(LookupError):
    """Raised when an operation targets a session key with no stored log."""


def generate_session_key() -> str:
    """Return 128 bits of CSPRNG output as a 32-character hex string."""

    return secrets.token_hex(SESSION_KEY_BYTES)


def is_wellformed_key(key: str) -> bool:
    return isinstance(key, str) and _SESSION_KEY_PATTERN.fullmatch(key) is not None


def key_fingerprint(key: str) -> str:
    """Short digest used in log lines in place of the secret key."""

    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]


def _now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class KeyLockArena:
    """Hand out one mutual-exclusion lock per key, dropping idle locks."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class SessionStore:
    """Create, append to, read and destroy encrypted session logs."""

    def __init__(
        self,
        backend: LogStorage,
        cipher: CipherEngine | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.backend = backend
        self.cipher = cipher or CipherEngine()
        self.clock = clock or _now_timestamp
        self._locks = KeyLockArena()

    def create(self) -> str:
        """Persist an empty log under a fresh key and return the key."""

        key = generate_session_key()
        with self._locks.hold(key):
            # A 128-bit collision reuses the existing log rather than wiping it.
            if not self.backend.exists(key):
                self.backend.write(key, encode_log(SessionLog()))
        logger.info("Created chat session", extra={"session": key_fingerprint(key)})
        return key

    def exists(self, key: str) -> bool:
        if not is_wellformed_key(key):
            return False
        return self.backend.exists(key)

    def append(self, key: str, text: str) -> List[Message]:
        """Encrypt and append *text*, returning the full decrypted history.

        Raises :class:`SessionNotFoundError` when no log exists for *key*.
        """

        if not is_wellformed_key(key):
            raise SessionNotFoundError("Unknown chat session")
        with self._locks.hold(key):
            data = self.backend.read(key)
            if data is None:
                raise SessionNotFoundError("Unknown chat session")
            log = decode_log(data)
            log.append(
                EncryptedRecord(message=self.cipher.encrypt(key, text), timestamp=self.clock())
            )
            self.backend.write(key, encode_log(log))
        logger.debug(
            "Appended chat message",
            extra={"session": key_fingerprint(key), "records": len(log)},
        )
        return self._decrypt_all(key, log)

    def fetch_all(self, key: str) -> List[Message]:
        """Return every message for *key* in insertion order, or ``[]``."""

        if not is_wellformed_key(key):
            return []
        data = self.backend.read(key)
        if data is None:
            return []
        return self._decrypt_all(key, decode_log(data))

    def remove(self, key: str) -> bool:
        if not is_wellformed_key(key):
            return False
        with self._locks.hold(key):
            removed = self.backend.delete(key)
        if removed:
            logger.info("Deleted chat session", extra={"session": key_fingerprint(key)})
        return removed

    def _decrypt_all(self, key: str, log: SessionLog) -> List[Message]:
        messages: List[Message] = []
        for index, record in enumerate(log.records):
            try:
                text = self.cipher.decrypt(key, record.message)
            except DecryptionError:
                logger.warning(
                    "Could not decrypt chat record %d",
                    index,
                    extra={"session": key_fingerprint(key)},
                )
                messages.append(Message(message=None, timestamp=record.timestamp, undecryptable=True))
                continue
            messages.append(Message(message=text, timestamp=record.timestamp))
        return messages
