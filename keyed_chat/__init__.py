"""Key-gated, encrypted-at-rest chat sessions."""

from .codec import CorruptLogError, decode_log, encode_log
from .config import ChatConfig, ConfigurationError, load_chat_config
from .encryption import (
    CipherEngine,
    DecryptionError,
    MessageEncodingError,
    decrypt_message,
    encrypt_message,
)
from .model import EncryptedRecord, Message, SessionLog
from .service import SessionService
from .storage import FileLogStorage, LogStorage, SQLiteLogStorage, StorageIOError, open_storage
from .store import SessionNotFoundError, SessionStore, generate_session_key

__all__ = [
    "ChatConfig",
    "CipherEngine",
    "ConfigurationError",
    "CorruptLogError",
    "DecryptionError",
    "EncryptedRecord",
    "FileLogStorage",
    "LogStorage",
    "Message",
    "MessageEncodingError",
    "SQLiteLogStorage",
    "SessionLog",
    "SessionNotFoundError",
    "SessionService",
    "SessionStore",
    "StorageIOError",
    "decode_log",
    "decrypt_message",
    "encode_log",
    "encrypt_message",
    "generate_session_key",
    "load_chat_config",
    "open_storage",
]
