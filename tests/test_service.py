"""End-to-end tests for the five request-facing session operations."""

from __future__ import annotations

from pathlib import Path

import pytest

from keyed_chat.config import ChatConfig
from keyed_chat.service import SessionService
from keyed_chat.storage import FileLogStorage, StorageIOError
from keyed_chat.store import SessionStore, generate_session_key


@pytest.fixture
def service(tmp_path: Path) -> SessionService:
    return SessionService.from_config(ChatConfig(storage_dir=tmp_path))


def test_generate_then_validate(service: SessionService) -> None:
    key = service.generate_session()

    assert service.validate_session(key) is True
    assert service.validate_session(generate_session_key()) is False
    assert service.validate_session("") is False


def test_send_and_fetch_history(service: SessionService) -> None:
    key = service.generate_session()

    assert service.fetch_history(key) == []
    service.send_message(key, "a")
    history = service.send_message(key, "b")

    assert history is not None
    assert [message.message for message in history] == ["a", "b"]
    assert [message.to_dict()["message"] for message in service.fetch_history(key)] == ["a", "b"]


def test_send_to_deleted_session_reports_ended(service: SessionService) -> None:
    key = service.generate_session()

    assert service.delete_session(key) is True
    assert service.send_message(key, "hello?") is None
    assert service.fetch_history(key) == []
    assert service.delete_session(key) is False


def test_corrupt_log_is_translated(tmp_path: Path) -> None:
    service = SessionService(SessionStore(FileLogStorage(tmp_path)))
    key = service.generate_session()
    (tmp_path / f"{key}.json").write_bytes(b"\x00garbage")

    assert service.validate_session(key) is True
    assert service.fetch_history(key) == []
    assert service.send_message(key, "hi") is None


def test_storage_errors_propagate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    storage = FileLogStorage(tmp_path)
    service = SessionService(SessionStore(storage))
    key = service.generate_session()

    def fail_write(*_args, **_kwargs) -> None:
        raise StorageIOError("disk full")

    monkeypatch.setattr(storage, "write", fail_write)

    with pytest.raises(StorageIOError):
        service.send_message(key, "lost?")


def test_sqlite_backend_from_config(tmp_path: Path) -> None:
    service = SessionService.from_config(
        ChatConfig(storage_dir=tmp_path, backend="sqlite", cipher="aes-256-cbc")
    )
    key = service.generate_session()
    service.send_message(key, "stored in sqlite")

    assert [message.message for message in service.fetch_history(key)] == ["stored in sqlite"]
    service.close()
