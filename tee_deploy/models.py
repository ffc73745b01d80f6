from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .masking import mask_sensitive_values

DEFAULT_FEATURES = ["kms", "tproxy-net"]


def normalize_pubkey_hex(v: str) -> str:
    """The cloud API hands keys out as '0x'-prefixed hex; the core wants bare lowercase."""
    v = v.strip()
    if v[:2].lower() == "0x":
        v = v[2:]
    return v.lower()


# ===================== CLOUD API =====================

class DockerConfig(BaseModel):
    username: str = ""
    password: str = ""
    registry: Optional[str] = None


class AdvancedFeatures(BaseModel):
    tproxy: bool = True
    kms: bool = True
    public_sys_info: bool = True
    public_logs: bool = True
    docker_config: DockerConfig = Field(default_factory=DockerConfig)
    listed: bool = False


class ComposeManifest(BaseModel):
    name: str
    features: List[str] = Field(default_factory=lambda: list(DEFAULT_FEATURES))
    docker_compose_file: str


class VmConfig(BaseModel):
    name: str
    compose_manifest: ComposeManifest
    vcpu: int = Field(1, ge=1)
    memory: int = Field(1024, ge=1, description="Memory in MB")
    disk_size: int = Field(10, ge=1, description="Disk in GB")
    teepod_id: int
    image: str
    advanced_features: AdvancedFeatures = Field(default_factory=AdvancedFeatures)

    def masked(self) -> Dict[str, Any]:
        """Dump safe for logs (registry password hidden)."""
        return mask_sensitive_values(self.model_dump(mode="json"))


class PubkeyResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    app_env_encrypt_pubkey: str
    app_id_salt: str

    @field_validator("app_env_encrypt_pubkey")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_pubkey_hex(v)


class TeePodImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class TeePod(BaseModel):
    model_config = ConfigDict(extra="allow")

    teepod_id: int
    name: Optional[str] = None
    images: List[TeePodImage] = Field(default_factory=list)


class TeePodDiscoveryResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    tier: Optional[str] = None
    capacity: Optional[Dict[str, Any]] = None
    nodes: List[TeePod] = Field(default_factory=list)


class DeploymentResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    status: str
    details: Optional[Dict[str, Any]] = None


class ComposeResponse(BaseModel):
    compose_file: Dict[str, Any]
    env_pubkey: str

    @field_validator("env_pubkey")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_pubkey_hex(v)


class PublicUrl(BaseModel):
    app: str = ""
    instance: str = ""


class NetworkInfoResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    is_online: bool = False
    is_public: bool = False
    error: Optional[str] = None
    internal_ip: Optional[str] = None
    latest_handshake: Optional[str] = None
    public_urls: List[PublicUrl] = Field(default_factory=list)


class SystemStatsResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    is_online: bool = False
    is_public: bool = False
    error: Optional[str] = None
    sysinfo: Dict[str, Any] = Field(default_factory=dict)


# ===================== RELAY =====================

class CreateSessionIn(BaseModel):
    vm_config: VmConfig


class PubkeyOut(BaseModel):
    session_id: str
    app_env_encrypt_pubkey: str


class EnvelopeIn(BaseModel):
    encrypted_env: str = Field(..., description="Lowercase hex envelope produced by the secret owner")


class SessionOut(BaseModel):
    session_id: str
    stage: str
    app_env_encrypt_pubkey: str
    vm_name: str
    deployment: Optional[DeploymentResponse] = None
