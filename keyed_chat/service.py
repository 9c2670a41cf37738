"""Storage-agnostic facade consumed by request handlers.

The five operations here map one-to-one onto the chat actions (generate,
join, send, fetch, delete).  Missing and corrupt sessions are translated into
``None``/``[]``/``False`` results; storage failures propagate as
:class:`~keyed_chat.storage.StorageIOError`.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .codec import CorruptLogError
from .config import ChatConfig
from .encryption import CipherEngine
from .model import Message
from .storage import open_storage
from .store import SessionNotFoundError, SessionStore, key_fingerprint

logger = logging.getLogger(__name__)


class SessionService:
    """Thin pass-through over :class:`SessionStore`."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    @classmethod
    def from_config(cls, config: ChatConfig) -> "SessionService":
        store = SessionStore(open_storage(config), cipher=CipherEngine(config.cipher))
        return cls(store)

    def generate_session(self) -> str:
        return self.store.create()

    def validate_session(self, key: str) -> bool:
        return self.store.exists(key)

    def send_message(self, key: str, text: str) -> Optional[List[Message]]:
        """Append *text* and return the full history.

        Returns ``None`` when the session no longer exists (or its log is
        unreadable); callers should treat that as the session having ended.
        Text that cannot be encoded as UTF-8 raises
        :class:`~keyed_chat.encryption.MessageEncodingError` and leaves the log
        untouched.
        """

        try:
            return self.store.append(key, text)
        except SessionNotFoundError:
            logger.info("Send rejected for unknown chat session")
            return None
        except CorruptLogError:
            logger.error("Chat session log is corrupt", extra={"session": key_fingerprint(key)})
            return None

    def fetch_history(self, key: str) -> List[Message]:
        try:
            return self.store.fetch_all(key)
        except CorruptLogError:
            logger.error("Chat session log is corrupt", extra={"session": key_fingerprint(key)})
            return []

    def delete_session(self, key: str) -> bool:
        return self.store.remove(key)

    def close(self) -> None:
        self.store.backend.close()
