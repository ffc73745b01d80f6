# tee_deploy/crypto/cipher.py
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import AuthenticationFailure, DecryptionFailure, EncryptionFailure
from .keyexchange import Rng, wipe

KEY_SIZE = 32      # AES-256
NONCE_SIZE = 12    # 96-bit GCM nonce
TAG_SIZE = 16

# Domain-separation label appended to the ECDH output before hashing.
KDF_LABEL = b"phala-tee-deploy/env-encryption/v1"


def derive_key(shared_secret) -> bytearray:
    """AES-256 key = SHA-256(shared_secret || KDF_LABEL)."""
    if len(shared_secret) != 32:
        raise ValueError(f"shared secret must be 32 bytes, got {len(shared_secret)}")
    h = hashes.Hash(hashes.SHA256())
    h.update(bytes(shared_secret))
    h.update(KDF_LABEL)
    return bytearray(h.finalize())


def generate_nonce(rng: Optional[Rng] = None) -> bytes:
    nonce = (rng or secrets.token_bytes)(NONCE_SIZE)
    if len(nonce) != NONCE_SIZE:
        raise RuntimeError("random source returned a short read")
    return bytes(nonce)


def encrypt(key, nonce: bytes, plaintext) -> tuple[bytes, bytes]:
    """AES-256-GCM seal; returns (ciphertext, tag)."""
    try:
        sealed = AESGCM(bytes(key)).encrypt(nonce, bytes(plaintext), None)
    except (ValueError, TypeError, OverflowError) as e:
        raise EncryptionFailure(f"AES-GCM encryption failed: {e}") from e
    return sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]


def decrypt(key, nonce: bytes, ciphertext: bytes, tag: bytes) -> bytearray:
    """
    AES-256-GCM open. The tag is verified before any plaintext is released,
    so a failed call never returns partial output.
    """
    if len(tag) != TAG_SIZE:
        raise AuthenticationFailure("authentication tag has the wrong size")
    try:
        return bytearray(AESGCM(bytes(key)).decrypt(nonce, bytes(ciphertext) + bytes(tag), None))
    except InvalidTag:
        raise AuthenticationFailure("envelope authentication failed") from None
    except (ValueError, TypeError, OverflowError) as e:
        raise DecryptionFailure(f"AES-GCM decryption failed: {e}") from e


__all__ = [
    "KEY_SIZE", "NONCE_SIZE", "TAG_SIZE", "KDF_LABEL",
    "derive_key", "generate_nonce", "encrypt", "decrypt", "wipe",
]
