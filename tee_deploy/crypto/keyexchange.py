# tee_deploy/crypto/keyexchange.py
"""
X25519 ephemeral key agreement.

The private scalar lives in a bytearray so it can be overwritten once the
exchange is done. `cryptography` keeps its own copy inside the key object;
that copy is dropped together with the object at the end of each call.
"""
import secrets
from typing import Callable, Optional

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..errors import InvalidPublicKey

KEY_SIZE = 32

Rng = Callable[[int], bytes]


def wipe(buf: Optional[bytearray]) -> None:
    """Overwrite a secret-bearing buffer in place."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0


class EphemeralKeyPair:
    """One-shot X25519 keypair; use as a context manager so the scalar is wiped."""

    __slots__ = ("_private", "public")

    def __init__(self, private: bytearray, public: bytes):
        self._private = private
        self.public = public

    @property
    def private(self) -> bytearray:
        if self._private is None:
            raise ValueError("ephemeral private key already wiped")
        return self._private

    @property
    def wiped(self) -> bool:
        return self._private is None

    def wipe(self) -> None:
        wipe(self._private)
        self._private = None

    def __enter__(self) -> "EphemeralKeyPair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        # never print the scalar
        return f"EphemeralKeyPair(public={self.public.hex()})"


def _load_private(private) -> X25519PrivateKey:
    if len(private) != KEY_SIZE:
        raise InvalidPublicKey(f"private key must be {KEY_SIZE} bytes, got {len(private)}")
    return X25519PrivateKey.from_private_bytes(bytes(private))


def _raw_public(key: X25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def public_key_from_private(private) -> bytes:
    """Public point for a static 32-byte private scalar."""
    return _raw_public(_load_private(private))


def generate_ephemeral_keypair(rng: Optional[Rng] = None) -> EphemeralKeyPair:
    """Draw a fresh scalar from `rng` (default: the OS CSPRNG)."""
    draw = rng or secrets.token_bytes
    private = bytearray(draw(KEY_SIZE))
    if len(private) != KEY_SIZE:
        wipe(private)
        raise RuntimeError("random source returned a short read")
    try:
        public = public_key_from_private(private)
    except BaseException:
        wipe(private)
        raise
    return EphemeralKeyPair(private, public)


def compute_shared_secret(private, peer_public: bytes) -> bytearray:
    """
    X25519(private, peer_public).

    Only the length of `peer_public` is checked here; clamping is left to the
    curve arithmetic. A peer point that yields the all-zero output is rejected
    by `cryptography` and surfaces as InvalidPublicKey as well.
    """
    if not isinstance(peer_public, (bytes, bytearray)) or len(peer_public) != KEY_SIZE:
        size = len(peer_public) if isinstance(peer_public, (bytes, bytearray)) else type(peer_public).__name__
        raise InvalidPublicKey(f"peer public key must be {KEY_SIZE} bytes, got {size}")
    key = _load_private(private)
    try:
        shared = key.exchange(X25519PublicKey.from_public_bytes(bytes(peer_public)))
    except ValueError as e:
        raise InvalidPublicKey(f"unusable peer public key: {e}") from e
    return bytearray(shared)
