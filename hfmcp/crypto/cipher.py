"""AES-256-GCM encryption of credential bundles."""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_BYTES = 32
NONCE_BYTES = 12
ENVELOPE_SEPARATOR = ":"


class KeyConfigurationError(Exception):
    """The configured cipher key is unusable."""


class DecryptionError(Exception):
    """An envelope could not be decrypted.

    Callers treat this the same as a missing record.
    """


def decode_key(key_b64: str) -> bytes:
    """Decode a base64 key and check it is exactly 256 bits."""
    try:
        raw = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise KeyConfigurationError("Cipher key must be valid base64") from exc
    if len(raw) != KEY_BYTES:
        raise KeyConfigurationError("Cipher key must be exactly 32 bytes (256 bits)")
    return raw


class CredentialCipher:
    """Encrypts strings into ``base64(nonce):base64(ciphertext+tag)`` envelopes."""

    def __init__(self, key_b64: str) -> None:
        self._key_b64 = key_b64
        self._aead: AESGCM | None = None

    def _get_aead(self) -> AESGCM:
        if self._aead is None:
            self._aead = AESGCM(decode_key(self._key_b64))
        return self._aead

    def validate_key(self) -> None:
        """Import the key now so misconfiguration fails at startup."""
        self._get_aead()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt with a fresh random nonce."""
        nonce = os.urandom(NONCE_BYTES)
        ciphertext = self._get_aead().encrypt(nonce, plaintext.encode(), None)
        return (
            base64.b64encode(nonce).decode()
            + ENVELOPE_SEPARATOR
            + base64.b64encode(ciphertext).decode()
        )

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`."""
        aead = self._get_aead()
        nonce_b64, sep, ciphertext_b64 = envelope.partition(ENVELOPE_SEPARATOR)
        if not sep:
            raise DecryptionError("Invalid encrypted data format")
        try:
            nonce = base64.b64decode(nonce_b64, validate=True)
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Invalid base64 in envelope") from exc
        if len(nonce) != NONCE_BYTES:
            raise DecryptionError("Invalid nonce length")
        try:
            plaintext = aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise DecryptionError("Authentication tag mismatch") from exc
        try:
            return plaintext.decode()
        except UnicodeDecodeError as exc:
            raise DecryptionError("Plaintext is not UTF-8") from exc
