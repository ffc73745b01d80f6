"""
Deploy containers to Phala TEE hosts with environment secrets the operator never sees.

The operator gets a public key bound to one VM configuration, the secret
owner encrypts env vars against it locally, and the operator forwards the
resulting envelope unmodified.
"""
from .crypto import EnvVarEntry, decrypt_env_vars, encrypt_env_vars, generate_recipient_keypair
from .client import TeeClient
from .config import Settings
from .deployer import TeeDeployer
from .errors import (
    TeeDeployError, CryptoError, InvalidPublicKey, MalformedEnvelope, AuthenticationFailure,
    EncryptionFailure, DecryptionFailure, SerializationFailure, ConfigurationError, MissingEnvVar,
    ApiError, TransportError, ProtocolError, BindingViolation,
)
from .protocol import DeploymentSession, KeyIssuance, SessionStore, Stage, user_encrypt

__version__ = "0.1.0"

__all__ = [
    "EnvVarEntry", "encrypt_env_vars", "decrypt_env_vars", "generate_recipient_keypair",
    "TeeClient", "Settings", "TeeDeployer",
    "TeeDeployError", "CryptoError", "InvalidPublicKey", "MalformedEnvelope", "AuthenticationFailure",
    "EncryptionFailure", "DecryptionFailure", "SerializationFailure", "ConfigurationError",
    "MissingEnvVar", "ApiError", "TransportError", "ProtocolError", "BindingViolation",
    "DeploymentSession", "KeyIssuance", "SessionStore", "Stage", "user_encrypt",
]
