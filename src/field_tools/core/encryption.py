"""AES-256-GCM helpers for sensitive session fields"""

import base64
import binascii
import logging
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from field_tools.config.settings import get_settings

logger = logging.getLogger(__name__)

NONCE_SIZE = 12


def encryption_enabled() -> bool:
    """Whether an encryption key is configured"""
    return bool(get_settings().encryption_key)


def _get_key() -> bytes:
    """
    Get the 32-byte encryption key

    Raises:
        ValueError: If the configured key is neither 32 raw bytes nor base64 of 32 bytes
    """
    key_str = get_settings().encryption_key

    if len(key_str) == 32:
        return key_str.encode()

    try:
        key_bytes = base64.b64decode(key_str, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Invalid encryption key: {type(e).__name__}")
        raise ValueError(
            "Invalid encryption key. Expected 32 raw bytes or a base64 encoded 32-byte key."
        ) from e

    if len(key_bytes) != 32:
        raise ValueError(f"Decoded encryption key is {len(key_bytes)} bytes, expected 32")
    return key_bytes


def encrypt_text(plaintext: str) -> str:
    """
    Encrypt a string

    Args:
        plaintext: Clear text

    Returns:
        Base64 of nonce + ciphertext
    """
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(_get_key()).encrypt(nonce, plaintext.encode(), None)
    return base64.b64encode(nonce + ciphertext).decode()


def decrypt_text(encrypted: str) -> str:
    """
    Decrypt a string produced by encrypt_text

    Args:
        encrypted: Base64 of nonce + ciphertext

    Returns:
        Clear text
    """
    combined = base64.b64decode(encrypted)
    nonce, ciphertext = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
    return AESGCM(_get_key()).decrypt(nonce, ciphertext, None).decode()
