"""Per-message symmetric encryption for chat session logs.

Every message is sealed independently under the session key with a freshly
drawn IV, and the ``iv || ciphertext`` pair is base64 encoded so it can be
embedded directly in the JSON session log.  AES-256-GCM is the default.
AES-256-CBC is an opt-in mode that provides confidentiality only: corrupted
or tampered blobs may decrypt to garbage instead of failing.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


AES_256_GCM = "aes-256-gcm"
AES_256_CBC = "aes-256-cbc"
SUPPORTED_ALGORITHMS = (AES_256_GCM, AES_256_CBC)

_KEY_LENGTH = 32
_GCM_NONCE_SIZE = 12
_GCM_TAG_SIZE = 16
_CBC_IV_SIZE = 16
_CBC_BLOCK_BITS = 128


class DecryptionError(ValueError):
    """Raised when a ciphertext blob cannot be turned back into plaintext."""


class MessageEncodingError(ValueError):
    """Raised when message text cannot be encoded as UTF-8 for encryption."""


def key_material(session_key: str) -> bytes:
    """Return the 256-bit AES key for *session_key*.

    The UTF-8 bytes of the key are truncated or NUL-padded to 32 bytes, so a
    32-character hex session key is used byte for byte.
    """

    raw = session_key.encode("utf-8")
    return raw[:_KEY_LENGTH].ljust(_KEY_LENGTH, b"\0")


class CipherEngine:
    """Stateless encrypt/decrypt transform parameterised by algorithm."""

    def __init__(self, algorithm: str = AES_256_GCM) -> None:
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported cipher algorithm: {algorithm}")
        self.algorithm = algorithm

    @property
    def iv_size(self) -> int:
        return _GCM_NONCE_SIZE if self.algorithm == AES_256_GCM else _CBC_IV_SIZE

    def encrypt(self, session_key: str, plaintext: str) -> str:
        """Encrypt *plaintext* and return ``base64(iv || ciphertext)``.

        Raises :class:`MessageEncodingError` for text that is not valid
        Unicode, such as strings holding lone surrogates.
        """

        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise MessageEncodingError("Message text is not valid UTF-8") from exc
        key = key_material(session_key)
        iv = os.urandom(self.iv_size)
        if self.algorithm == AES_256_GCM:
            ciphertext = AESGCM(key).encrypt(iv, data, None)
        else:
            padder = padding.PKCS7(_CBC_BLOCK_BITS).padder()
            padded = padder.update(data) + padder.finalize()
            encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, session_key: str, blob: str) -> str:
        """Decrypt a blob produced by :meth:`encrypt`.

        Raises :class:`DecryptionError` for malformed blobs, wrong keys and
        invalid padding.  In CBC mode a wrong key can occasionally produce
        valid padding, in which case garbage text is returned.
        """

        try:
            data = base64.b64decode(blob.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise DecryptionError("Ciphertext blob is not valid base64") from exc

        iv, ciphertext = data[: self.iv_size], data[self.iv_size :]
        key = key_material(session_key)
        if self.algorithm == AES_256_GCM:
            if len(ciphertext) < _GCM_TAG_SIZE:
                raise DecryptionError("Ciphertext blob is too short")
            try:
                plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
            except InvalidTag as exc:
                raise DecryptionError("Failed to decrypt message; invalid key or data") from exc
        else:
            if not ciphertext or len(ciphertext) % (_CBC_BLOCK_BITS // 8):
                raise DecryptionError("Ciphertext blob is too short or misaligned")
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(_CBC_BLOCK_BITS).unpadder()
            try:
                plaintext = unpadder.update(padded) + unpadder.finalize()
            except ValueError as exc:
                raise DecryptionError("Failed to decrypt message; invalid padding") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted message is not valid UTF-8") from exc


_DEFAULT_ENGINE = CipherEngine()


def encrypt_message(session_key: str, plaintext: str) -> str:
    """Encrypt *plaintext* with the default AES-256-GCM engine."""

    return _DEFAULT_ENGINE.encrypt(session_key, plaintext)


def decrypt_message(session_key: str, blob: str) -> str:
    """Decrypt *blob* with the default AES-256-GCM engine."""

    return _DEFAULT_ENGINE.decrypt(session_key, blob)
