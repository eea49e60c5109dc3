"""
Encryption of stored two-factor secrets.

Uses AES-256-GCM (authenticated encryption) from the ``cryptography`` package.
Each encryption draws a fresh random 16-byte IV; the stored form is
``ivhex:authtaghex:ciphertexthex``.

SECURITY NOTES:
- The GCM tag makes stored secrets tamper-evident
- Changing TWO_FACTOR_ENCRYPTION_KEY makes existing secrets undecryptable
- Never log plaintext secrets or keys
"""

import base64
import binascii
import hashlib
import logging
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mesanet.core.config import settings
from mesanet.exceptions import EncryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")
_HEX_PART = re.compile(r"^[0-9a-fA-F]*$")


def normalize_key(raw_key: str) -> bytes:
    """
    Normalize an operator-supplied key to exactly 32 bytes.

    Accepted forms, tried in this order:
        1. 64 hexadecimal characters
        2. Base64 that decodes to exactly 32 bytes
        3. Any other string, hashed with SHA-256

    Args:
        raw_key: Key material from configuration

    Returns:
        32-byte AES key

    Example:
        >>> len(normalize_key("correct horse battery staple"))
        32
    """
    if _HEX_KEY.match(raw_key):
        return bytes.fromhex(raw_key)

    try:
        decoded = base64.b64decode(raw_key, validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    if len(decoded) == KEY_LENGTH:
        return decoded

    return hashlib.sha256(raw_key.encode("utf-8")).digest()


class SecretCipher:
    """
    AES-256-GCM cipher for short secrets such as TOTP seeds.

    The ``cryptography`` AESGCM primitive appends the 16-byte tag to the
    ciphertext; this class splits it out so the stored triple keeps IV,
    tag and ciphertext as separate hex fields.
    """

    def __init__(self, key: str | None = None) -> None:
        """
        Initialize cipher.

        Args:
            key: Raw key material. Defaults to settings.two_factor_encryption_key
        """
        self._aesgcm = AESGCM(normalize_key(key or settings.two_factor_encryption_key))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret.

        Args:
            plaintext: Secret to encrypt

        Returns:
            ``ivhex:authtaghex:ciphertexthex``
        """
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        """
        Decrypt a stored secret.

        Args:
            encrypted: Value produced by encrypt()

        Returns:
            The original plaintext

        Raises:
            EncryptionError: If the format is wrong or authentication fails
        """
        parts = encrypted.split(":")
        if len(parts) != 3 or not all(
            _HEX_PART.match(part) and len(part) % 2 == 0 for part in parts
        ):
            raise EncryptionError("Invalid encrypted data format")

        iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise EncryptionError("Invalid encrypted data format")

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag:
            logger.error("Decryption failed: invalid or tampered ciphertext")
            raise EncryptionError("Failed to decrypt data") from None

        return plaintext.decode("utf-8")
