"""
Manifest cipher.

Passphrase-based AES-256-CBC in the OpenSSL "salted" envelope, the
format produced by common JavaScript AES helpers:

    base64( b"Salted__" || salt[8] || ciphertext )

Key and IV are derived from the passphrase and salt with
EVP_BytesToKey (MD5, one iteration). The salt travels inside the
ciphertext, so the shared secret alone is enough to decrypt.

Decryption is reported in two stages:

- Stage A (DecryptionFailed): the bytes cannot be recovered as text at
  all: bad base64, missing envelope header, truncated blocks, invalid
  padding, empty or non-UTF-8 plaintext.
- Stage B (InvalidManifestStructure): the text is recovered but is not a
  manifest.

LIMITATION:
The construction carries no authentication tag. A wrong passphrase
usually fails Stage A, but it can occasionally produce text that parses.
Such a result is not distinguishable from a genuine one here.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from typing import Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from pydantic import ValidationError

from inspector.app.errors import DecryptionFailed, InvalidManifestStructure
from inspector.app.schemas.manifest import ParcelManifest

SALT_HEADER = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
BLOCK_BITS = 128


# ------------------------------------------------------------------
# Key derivation
# ------------------------------------------------------------------


def _evp_bytes_to_key(passphrase: bytes, salt: bytes) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
    derived = b""
    block = b""
    while len(derived) < KEY_SIZE + IV_SIZE:
        block = hashlib.md5(
            block + passphrase + salt, usedforsecurity=False
        ).digest()
        derived += block
    return derived[:KEY_SIZE], derived[KEY_SIZE:KEY_SIZE + IV_SIZE]


def _cipher(secret: str, salt: bytes) -> Cipher:
    key, iv = _evp_bytes_to_key(secret.encode("utf-8"), salt)
    return Cipher(algorithms.AES(key), modes.CBC(iv))


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def encrypt_manifest(manifest: ParcelManifest, secret: str) -> str:
    """
    Encrypt a manifest into the salted envelope.

    Producer-side counterpart of decrypt_manifest. A fresh random salt
    is used for every call.
    """
    return encrypt_text(
        json.dumps(
            manifest.to_wire(),
            ensure_ascii=False,
            separators=(",", ":"),
        ),
        secret,
    )


def encrypt_text(text: str, secret: str) -> str:
    """Seal arbitrary UTF-8 text in the salted envelope."""
    plaintext = text.encode("utf-8")
    salt = os.urandom(SALT_SIZE)

    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = _cipher(secret, salt).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(SALT_HEADER + salt + ciphertext).decode("ascii")


def decrypt_manifest(cipher_text: str, secret: str) -> ParcelManifest:
    """
    Decrypt a salted envelope into a ParcelManifest.

    Raises:
        DecryptionFailed: Stage A failure.
        InvalidManifestStructure: Stage B failure.
    """
    text = _decrypt_text(cipher_text, secret)
    return _parse_manifest(text)


# ------------------------------------------------------------------
# Stage A: cipher decode
# ------------------------------------------------------------------


def _decrypt_text(cipher_text: str, secret: str) -> str:
    try:
        envelope = base64.b64decode(cipher_text.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionFailed(
            "Payload is not valid base64. Data corruption suspected."
        ) from exc

    if not envelope.startswith(SALT_HEADER):
        raise DecryptionFailed(
            "Payload is not a salted cipher envelope."
        )

    salt = envelope[len(SALT_HEADER):len(SALT_HEADER) + SALT_SIZE]
    body = envelope[len(SALT_HEADER) + SALT_SIZE:]

    if len(salt) != SALT_SIZE or not body or len(body) % (BLOCK_BITS // 8):
        raise DecryptionFailed(
            "Cipher payload is truncated. Data corruption suspected."
        )

    decryptor = _cipher(secret, salt).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionFailed() from exc

    if not plaintext:
        raise DecryptionFailed(
            "Invalid encrypted QR or wrong key."
        )

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionFailed() from exc


# ------------------------------------------------------------------
# Stage B: structural decode
# ------------------------------------------------------------------


def _parse_manifest(text: str) -> ParcelManifest:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidManifestStructure(
            "Decrypted payload is not valid JSON."
        ) from exc

    if not isinstance(data, dict):
        raise InvalidManifestStructure(
            "Decrypted payload is not a manifest record."
        )

    try:
        return ParcelManifest.model_validate(data)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise InvalidManifestStructure(
            "Decrypted payload is missing or has invalid manifest fields: "
            + ", ".join(fields)
        ) from exc
