# tee_deploy/crypto/codec.py
"""
Wire formats shared with the guest side.

Plaintext: compact UTF-8 JSON, entries in caller order
    {"env":[{"key":"API_KEY","value":"sk-123"},{"key":"DEBUG","value":"true"}]}

Envelope: lowercase hex of  ephemeral_pub(32) || nonce(12) || ciphertext || tag(16)
"""
import json
import re
from typing import Iterable, NamedTuple

from ..errors import MalformedEnvelope, SerializationFailure
from .cipher import NONCE_SIZE
from .keyexchange import KEY_SIZE

PUBKEY_SIZE = KEY_SIZE
HEADER_SIZE = PUBKEY_SIZE + NONCE_SIZE  # 44

_HEX_RE = re.compile(r"[0-9a-f]*")


class EnvVarEntry(NamedTuple):
    name: str
    value: str


def _coerce(entry) -> EnvVarEntry:
    try:
        name, value = entry
    except (TypeError, ValueError):
        raise SerializationFailure(f"entry must be a (name, value) pair, got {type(entry).__name__}") from None
    if not isinstance(name, str) or not isinstance(value, str):
        raise SerializationFailure("entry name and value must both be strings")
    return EnvVarEntry(name, value)


def serialize_entries(entries: Iterable) -> bytes:
    """Canonical encoding; order and duplicates are kept as given."""
    doc = {"env": [{"key": e.name, "value": e.value} for e in map(_coerce, entries)]}
    try:
        return json.dumps(doc, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as e:
        # lone surrogates cannot be represented in UTF-8
        raise SerializationFailure(f"entry is not valid unicode: {e.reason}") from None


def deserialize_entries(data) -> list[EnvVarEntry]:
    try:
        doc = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationFailure(f"payload is not canonical JSON: {e}") from None
    if not isinstance(doc, dict) or not isinstance(doc.get("env"), list):
        raise SerializationFailure("payload has no 'env' list")
    out: list[EnvVarEntry] = []
    for item in doc["env"]:
        if not isinstance(item, dict) or set(item) != {"key", "value"}:
            raise SerializationFailure("env item must be an object with 'key' and 'value'")
        out.append(_coerce((item["key"], item["value"])))
    return out


def pack_envelope(ephemeral_pub: bytes, nonce: bytes, ciphertext_with_tag: bytes) -> str:
    if len(ephemeral_pub) != PUBKEY_SIZE:
        raise MalformedEnvelope(f"ephemeral public key must be {PUBKEY_SIZE} bytes")
    if len(nonce) != NONCE_SIZE:
        raise MalformedEnvelope(f"nonce must be {NONCE_SIZE} bytes")
    return (bytes(ephemeral_pub) + bytes(nonce) + bytes(ciphertext_with_tag)).hex()


def unpack_envelope(envelope_hex: str) -> tuple[bytes, bytes, bytes]:
    """Split an envelope by fixed field widths: 32 / 12 / remainder."""
    if not isinstance(envelope_hex, str) or len(envelope_hex) % 2 or not _HEX_RE.fullmatch(envelope_hex):
        raise MalformedEnvelope("envelope is not a lowercase hex string")
    raw = bytes.fromhex(envelope_hex)
    if len(raw) < HEADER_SIZE:
        raise MalformedEnvelope(f"envelope is {len(raw)} bytes, shorter than the {HEADER_SIZE}-byte header")
    return raw[:PUBKEY_SIZE], raw[PUBKEY_SIZE:HEADER_SIZE], raw[HEADER_SIZE:]
