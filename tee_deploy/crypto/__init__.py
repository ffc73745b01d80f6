# Re-export the envelope encryption core from a single namespace.
from .codec import EnvVarEntry, serialize_entries, deserialize_entries, pack_envelope, unpack_envelope
from .encryptor import (
    encrypt_env_vars, decrypt_env_vars, decode_key_hex,
    generate_recipient_keypair, recipient_public_key,
)
from .keyexchange import EphemeralKeyPair, generate_ephemeral_keypair, compute_shared_secret

__all__ = [
    "EnvVarEntry", "serialize_entries", "deserialize_entries", "pack_envelope", "unpack_envelope",
    "encrypt_env_vars", "decrypt_env_vars", "decode_key_hex",
    "generate_recipient_keypair", "recipient_public_key",
    "EphemeralKeyPair", "generate_ephemeral_keypair", "compute_shared_secret",
]
