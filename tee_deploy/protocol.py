# tee_deploy/protocol.py
"""
Operator/user privilege separation.

    KEY_ISSUED -> ENVELOPE_PRODUCED -> ENVELOPE_DELIVERED -> CONSUMED

1. Operator asks the cloud for (pubkey, salt) bound to one VM config.
2. Operator relays the pubkey to the secret owner.
3. Owner runs `user_encrypt` locally; plaintext never leaves that process.
4. Owner returns the hex envelope.
5. Operator forwards config, envelope and salt unmodified to the deploy call.

The operator side only ever holds the envelope. Config and salt are
fingerprinted at issuance; any change before deploy raises BindingViolation.
"""
import enum
import hashlib
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .crypto import encrypt_env_vars, unpack_envelope
from .errors import BindingViolation, ProtocolError
from .models import VmConfig

logger = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    KEY_ISSUED = "key_issued"
    ENVELOPE_PRODUCED = "envelope_produced"
    ENVELOPE_DELIVERED = "envelope_delivered"
    CONSUMED = "consumed"


def _config_dict(vm_config) -> Dict[str, Any]:
    if isinstance(vm_config, VmConfig):
        return vm_config.model_dump(mode="json")
    return dict(vm_config)


def binding_fingerprint(vm_config, salt: str) -> str:
    """SHA-256 over canonical JSON of the config plus the salt."""
    canon = json.dumps(
        {"vm_config": _config_dict(vm_config), "app_id_salt": salt},
        separators=(",", ":"), sort_keys=True,
    ).encode()
    return hashlib.sha256(canon).hexdigest()


@dataclass(frozen=True)
class KeyIssuance:
    """What the key-issuance call hands back, pinned to the config it was issued for."""
    vm_config: Dict[str, Any]
    pubkey_hex: str
    salt: str
    binding: str

    @classmethod
    def create(cls, vm_config, pubkey_hex: str, salt: str) -> "KeyIssuance":
        cfg = _config_dict(vm_config)
        return cls(vm_config=cfg, pubkey_hex=pubkey_hex, salt=salt, binding=binding_fingerprint(cfg, salt))

    def verify_binding(self, vm_config=None, salt: Optional[str] = None) -> None:
        cfg = self.vm_config if vm_config is None else vm_config
        s = self.salt if salt is None else salt
        if binding_fingerprint(cfg, s) != self.binding:
            raise BindingViolation("VM configuration or salt changed since the key was issued")


@dataclass(frozen=True)
class DeployRequest:
    vm_config: Dict[str, Any]
    encrypted_env: str
    app_env_encrypt_pubkey: str
    app_id_salt: str

    def to_body(self) -> Dict[str, Any]:
        body = dict(self.vm_config)
        body["encrypted_env"] = self.encrypted_env
        body["app_env_encrypt_pubkey"] = self.app_env_encrypt_pubkey
        body["app_id_salt"] = self.app_id_salt
        return body


def user_encrypt(entries: Iterable, pubkey_hex: str) -> str:
    """Secret-owner step: runs in the owner's process, returns only the envelope."""
    return encrypt_env_vars(entries, pubkey_hex)


@dataclass
class DeploymentSession:
    issuance: KeyIssuance
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stage: Stage = Stage.KEY_ISSUED
    envelope: Optional[str] = None
    result: Any = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _advance(self, expected: Stage, nxt: Stage) -> None:
        if self.stage is not expected:
            raise ProtocolError(f"session {self.session_id} is {self.stage.value}, expected {expected.value}")
        logger.info("Session %s: %s -> %s", self.session_id, self.stage.value, nxt.value)
        self.stage = nxt

    def attach_envelope(self, envelope_hex: str) -> None:
        """Accept the owner's envelope. Only the wire shape is checked; it is never opened here."""
        with self._lock:
            unpack_envelope(envelope_hex)
            self._advance(Stage.KEY_ISSUED, Stage.ENVELOPE_PRODUCED)
            self.envelope = envelope_hex

    def deliver(self, vm_config=None, salt: Optional[str] = None) -> DeployRequest:
        """
        Hand the envelope to the deploy step. Callers that rebuilt the config
        pass it in so it is checked against the issuance fingerprint.
        """
        with self._lock:
            if self.stage is Stage.ENVELOPE_PRODUCED:
                self.issuance.verify_binding(vm_config, salt)
            self._advance(Stage.ENVELOPE_PRODUCED, Stage.ENVELOPE_DELIVERED)
            return DeployRequest(
                vm_config=dict(self.issuance.vm_config),
                encrypted_env=self.envelope,
                app_env_encrypt_pubkey=self.issuance.pubkey_hex,
                app_id_salt=self.issuance.salt,
            )

    def consume(self, result: Any = None) -> None:
        with self._lock:
            self._advance(Stage.ENVELOPE_DELIVERED, Stage.CONSUMED)
            self.result = result

    def fail_delivery(self) -> None:
        """Deploy call failed: step back so the same envelope can be forwarded again."""
        with self._lock:
            if self.stage is Stage.ENVELOPE_DELIVERED:
                logger.warning("Session %s: delivery failed, envelope kept", self.session_id)
                self.stage = Stage.ENVELOPE_PRODUCED


class SessionStore:
    """In-memory sessions; one instance per relay process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, DeploymentSession] = {}

    def open(self, issuance: KeyIssuance) -> DeploymentSession:
        session = DeploymentSession(issuance=issuance)
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> DeploymentSession:
        with self._lock:
            return self._sessions[session_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
