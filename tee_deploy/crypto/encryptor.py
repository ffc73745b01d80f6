# tee_deploy/crypto/encryptor.py
"""
Hybrid encryption of environment variables for a TEE guest.

    X25519(ephemeral, recipient) -> SHA-256 KDF -> AES-256-GCM -> hex envelope

`encrypt_env_vars` runs on the secret owner's machine. `decrypt_env_vars` is
the guest-side counterpart; here it serves tests and local stand-ins that
hold the static recipient key.
"""
import logging
import re
from typing import Iterable, Optional, Union

from ..errors import AuthenticationFailure, InvalidPublicKey, MalformedEnvelope
from . import cipher
from .codec import EnvVarEntry, deserialize_entries, pack_envelope, serialize_entries, unpack_envelope
from .keyexchange import (
    KEY_SIZE, Rng, compute_shared_secret, generate_ephemeral_keypair, public_key_from_private, wipe,
)

logger = logging.getLogger(__name__)

_KEY_HEX_RE = re.compile(r"[0-9a-f]{64}")

KeyInput = Union[str, bytes, bytearray]


def decode_key_hex(key_hex: str) -> bytes:
    """Strict 64-char lowercase hex -> 32 bytes. Never pads or truncates."""
    if not isinstance(key_hex, str) or not _KEY_HEX_RE.fullmatch(key_hex):
        shown = len(key_hex) if isinstance(key_hex, str) else type(key_hex).__name__
        raise InvalidPublicKey(f"key must be 64 lowercase hex characters, got {shown}")
    return bytes.fromhex(key_hex)


def _private_bytes(private_key: KeyInput) -> bytearray:
    if isinstance(private_key, str):
        return bytearray(decode_key_hex(private_key))
    if isinstance(private_key, (bytes, bytearray)) and len(private_key) == KEY_SIZE:
        return bytearray(private_key)
    raise InvalidPublicKey("private key must be 32 bytes or 64 lowercase hex characters")


def encrypt_env_vars(
    entries: Iterable,
    recipient_pubkey_hex: str,
    rng: Optional[Rng] = None,
) -> str:
    """
    Encrypt ordered (name, value) pairs for the holder of `recipient_pubkey_hex`.

    A fresh ephemeral key and nonce are drawn on every call, so two calls with
    identical input never produce the same envelope. The mutable secret buffers
    (scalar, shared secret, derived key, plaintext copy) are wiped before
    return, on success and on error. The immutable `bytes` that JSON encoding
    and `cryptography` produce along the way cannot be wiped and are left to
    the garbage collector.
    """
    recipient = decode_key_hex(recipient_pubkey_hex)
    plaintext = bytearray(serialize_entries(entries))
    shared = key = None
    try:
        with generate_ephemeral_keypair(rng) as eph:
            shared = compute_shared_secret(eph.private, recipient)
            ephemeral_pub = eph.public
        key = cipher.derive_key(shared)
        nonce = cipher.generate_nonce(rng)
        ciphertext, tag = cipher.encrypt(key, nonce, plaintext)
    finally:
        wipe(plaintext)
        wipe(shared)
        wipe(key)

    envelope = pack_envelope(ephemeral_pub, nonce, ciphertext + tag)
    logger.debug("Encrypted env payload (%d bytes) into %d-char envelope", len(ciphertext), len(envelope))
    return envelope


def decrypt_env_vars(envelope_hex: str, recipient_private_key: KeyInput) -> list[EnvVarEntry]:
    """
    Open an envelope with the static recipient key.

    Raises MalformedEnvelope, AuthenticationFailure, DecryptionFailure or
    SerializationFailure; no plaintext escapes a failed call.
    """
    ephemeral_pub, nonce, sealed = unpack_envelope(envelope_hex)
    if len(sealed) < cipher.TAG_SIZE:
        raise MalformedEnvelope("envelope has no room for the authentication tag")
    if ephemeral_pub[-1] & 0x80:
        # X25519 ignores the top bit; a set bit means the key was altered in transit
        raise AuthenticationFailure("ephemeral public key is not canonical")

    private = _private_bytes(recipient_private_key)
    shared = key = plaintext = None
    try:
        try:
            shared = compute_shared_secret(private, ephemeral_pub)
        except InvalidPublicKey as e:
            raise AuthenticationFailure("envelope carries an unusable ephemeral key") from e
        key = cipher.derive_key(shared)
        plaintext = cipher.decrypt(key, nonce, sealed[:-cipher.TAG_SIZE], sealed[-cipher.TAG_SIZE:])
        return deserialize_entries(plaintext)
    finally:
        wipe(private)
        wipe(shared)
        wipe(key)
        wipe(plaintext)


def generate_recipient_keypair() -> tuple[str, str]:
    """Static (private_hex, public_hex) pair for a local stand-in of the guest."""
    with generate_ephemeral_keypair() as kp:
        return bytes(kp.private).hex(), kp.public.hex()


def recipient_public_key(private_key: KeyInput) -> str:
    private = _private_bytes(private_key)
    try:
        return public_key_from_private(private).hex()
    finally:
        wipe(private)
