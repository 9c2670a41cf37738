"""Unit tests for the per-message cipher engine."""

from __future__ import annotations

import base64

import pytest

from keyed_chat.encryption import (
    AES_256_CBC,
    AES_256_GCM,
    CipherEngine,
    DecryptionError,
    MessageEncodingError,
    decrypt_message,
    encrypt_message,
    key_material,
)
from keyed_chat.store import generate_session_key

ALGORITHMS = [AES_256_GCM, AES_256_CBC]


@pytest.mark.parametrize("algorithm", ALGORITHMS)
@pytest.mark.parametrize("plaintext", ["", "hello", "héllo wörld ☃", "x" * 5000])
def test_encrypt_and_decrypt_round_trip(algorithm: str, plaintext: str) -> None:
    engine = CipherEngine(algorithm)
    key = generate_session_key()

    assert engine.decrypt(key, engine.encrypt(key, plaintext)) == plaintext


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_encrypt_uses_fresh_iv_per_message(algorithm: str) -> None:
    engine = CipherEngine(algorithm)
    key = generate_session_key()

    first = base64.b64decode(engine.encrypt(key, "same text"))
    second = base64.b64decode(engine.encrypt(key, "same text"))

    assert first[: engine.iv_size] != second[: engine.iv_size]
    assert first != second


def test_gcm_rejects_wrong_key() -> None:
    engine = CipherEngine(AES_256_GCM)
    blob = engine.encrypt(generate_session_key(), "secret")

    with pytest.raises(DecryptionError):
        engine.decrypt(generate_session_key(), blob)


def test_cbc_wrong_key_never_returns_plaintext() -> None:
    engine = CipherEngine(AES_256_CBC)
    key = generate_session_key()
    for _ in range(25):
        blob = engine.encrypt(key, "secret")
        try:
            recovered = engine.decrypt(generate_session_key(), blob)
        except DecryptionError:
            continue
        assert recovered != "secret"


@pytest.mark.parametrize("algorithm", ALGORITHMS)
@pytest.mark.parametrize("blob", ["", "not base64!!", base64.b64encode(b"short").decode("ascii")])
def test_decrypt_rejects_malformed_blobs(algorithm: str, blob: str) -> None:
    with pytest.raises(DecryptionError):
        CipherEngine(algorithm).decrypt(generate_session_key(), blob)


def test_gcm_detects_tampering() -> None:
    key = generate_session_key()
    raw = bytearray(base64.b64decode(encrypt_message(key, "do not touch")))
    raw[-1] ^= 0x01
    tampered = base64.b64encode(bytes(raw)).decode("ascii")

    with pytest.raises(DecryptionError):
        decrypt_message(key, tampered)


def test_key_material_is_32_bytes() -> None:
    assert key_material("ab" * 16) == ("ab" * 16).encode("ascii")
    assert key_material("short") == b"short" + b"\0" * 27
    assert len(key_material("z" * 80)) == 32


def test_unknown_algorithm_rejected() -> None:
    with pytest.raises(ValueError):
        CipherEngine("rot13")


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_encrypt_rejects_lone_surrogates(algorithm: str) -> None:
    with pytest.raises(MessageEncodingError):
        CipherEngine(algorithm).encrypt(generate_session_key(), "caf\udce9")
