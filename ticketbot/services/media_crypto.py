"""AES-256-GCM wrapper for stored attachments.

Blob layout is ``iv (12 bytes) | tag (16 bytes) | ciphertext``; the key is the
SHA-256 digest of the configured key material.
"""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_SIZE = 12
TAG_SIZE = 16


class MediaDecryptionError(ValueError):
    pass


class MediaCipher:
    def __init__(self, key_material: str) -> None:
        if not key_material:
            raise ValueError("Media encryption key is not configured")
        self._aead = AESGCM(hashlib.sha256(key_material.encode("utf-8")).digest())

    def encrypt(self, plaintext: bytes) -> bytes:
        iv = os.urandom(IV_SIZE)
        sealed = self._aead.encrypt(iv, plaintext, None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return iv + tag + ciphertext

    def decrypt(self, blob: bytes) -> bytes:
        if len(blob) < IV_SIZE + TAG_SIZE:
            raise MediaDecryptionError("Encrypted blob is truncated")
        iv = blob[:IV_SIZE]
        tag = blob[IV_SIZE : IV_SIZE + TAG_SIZE]
        ciphertext = blob[IV_SIZE + TAG_SIZE :]
        try:
            return self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise MediaDecryptionError("Invalid or corrupted media blob") from exc
