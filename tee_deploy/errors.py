# tee_deploy/errors.py
"""Exception hierarchy for the deployment toolkit."""


class TeeDeployError(Exception):
    """Base class for every error raised by tee_deploy."""


# ---------- Envelope encryption core ----------

class CryptoError(TeeDeployError):
    """Base class for envelope encryption failures."""


class InvalidPublicKey(CryptoError):
    """Key material is malformed or has the wrong length.

    Raised for private keys as well as peer public keys.
    """


class MalformedEnvelope(CryptoError):
    """The hex envelope violates the wire format."""


class AuthenticationFailure(CryptoError):
    """Tag verification failed: the envelope was altered or the key is wrong."""


class EncryptionFailure(CryptoError):
    pass


class DecryptionFailure(CryptoError):
    pass


class SerializationFailure(CryptoError):
    """The entry list cannot be encoded or decoded."""


# ---------- Toolkit ----------

class ConfigurationError(TeeDeployError):
    pass


class MissingEnvVar(ConfigurationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing required environment variable: {name}")


class ApiError(TeeDeployError):
    """Non-2xx answer from the cloud API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error: {status_code} - {message}")


class TransportError(TeeDeployError):
    """The cloud API could not be reached (DNS, TLS, timeout, ...)."""


class ProtocolError(TeeDeployError):
    """A privilege-separation step was taken out of order."""


class BindingViolation(ProtocolError):
    """VM configuration or salt changed between key issuance and deploy."""
