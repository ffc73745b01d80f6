# tee_deploy/deployer.py
"""
Operator-facing facade over TeeClient.

The two-party flow is `issue_key` -> (owner encrypts) -> `deploy_with_encrypted_env`.
`deploy_compose` / `deploy_simple_service` are the single-party shortcut for
when the operator is also the secret owner.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .client import TeeClient
from .compose import build_simple_compose, load_compose_file
from .config import Settings
from .crypto import EnvVarEntry, encrypt_env_vars
from .errors import ApiError, ConfigurationError
from .models import (
    AdvancedFeatures, ComposeManifest, DeploymentResponse, NetworkInfoResponse,
    SystemStatsResponse, TeePodDiscoveryResponse, VmConfig,
)
from .protocol import KeyIssuance

logger = logging.getLogger(__name__)


class TeeDeployer:
    def __init__(self, client: TeeClient):
        self.client = client
        self.selected_teepod: Optional[Tuple[int, str]] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TeeDeployer":
        return cls(TeeClient.from_settings(settings))

    # ---------- TEEPod selection ----------

    def discover_teepod(self) -> TeePodDiscoveryResponse:
        """Pick the first available TEEPod and its first image."""
        logger.info("Discovering available TEEPods")
        teepods = self.client.get_available_teepods()
        for node in teepods.nodes:
            if node.images:
                self.selected_teepod = (node.teepod_id, node.images[0].name)
                logger.info("TEEPod discovered: id=%s image=%s", *self.selected_teepod)
                return teepods
        raise ApiError(400, "No available TEEPods found")

    def select_teepod(self, teepod_id: int) -> None:
        logger.info("Selecting TEEPod %s", teepod_id)
        teepods = self.client.get_available_teepods()
        for node in teepods.nodes:
            if node.teepod_id == teepod_id and node.images:
                self.selected_teepod = (node.teepod_id, node.images[0].name)
                logger.info("TEEPod selected: id=%s image=%s", *self.selected_teepod)
                return
        raise ApiError(404, f"TEEPod with ID {teepod_id} not found or not available")

    # ---------- VM config ----------

    def create_vm_config(
        self,
        docker_compose_file: str,
        app_name: str,
        vcpu: Optional[int] = None,
        memory: Optional[int] = None,
        disk_size: Optional[int] = None,
    ) -> VmConfig:
        if self.selected_teepod is None:
            raise ConfigurationError("No TEEPod selected. Call discover_teepod() or select_teepod() first")
        teepod_id, image = self.selected_teepod
        return VmConfig(
            name=app_name,
            compose_manifest=ComposeManifest(name=app_name, docker_compose_file=docker_compose_file),
            vcpu=vcpu or 1,
            memory=memory or 1024,
            disk_size=disk_size or 10,
            teepod_id=teepod_id,
            image=image,
            advanced_features=AdvancedFeatures(listed=True),
        )

    def create_vm_config_from_file(self, compose_path, app_name: str, **resources) -> VmConfig:
        return self.create_vm_config(load_compose_file(compose_path), app_name, **resources)

    # ---------- Two-party flow ----------

    def issue_key(self, vm_config: VmConfig) -> KeyIssuance:
        """Operator step 1: get (pubkey, salt) bound to exactly this config."""
        logger.info("Requesting env encryption key for %s", vm_config.name)
        logger.debug("VM config: %s", vm_config.masked())
        resp = self.client.get_pubkey_for_config(vm_config)
        return KeyIssuance.create(vm_config, resp.app_env_encrypt_pubkey, resp.app_id_salt)

    def deploy_with_encrypted_env(self, issuance: KeyIssuance, encrypted_env: str) -> DeploymentResponse:
        """Operator step 5: forward config, envelope and salt unmodified."""
        issuance.verify_binding()
        deployment = self.client.deploy_with_encrypted_env(
            issuance.vm_config, encrypted_env, issuance.pubkey_hex, issuance.salt,
        )
        logger.info("Deployment %s created (status=%s)", deployment.id, deployment.status)
        return deployment

    # ---------- Single-party shortcuts ----------

    def deploy_compose(
        self,
        docker_compose_file: str,
        app_name: str,
        entries: Iterable = (),
        vcpu: Optional[int] = None,
        memory: Optional[int] = None,
        disk_size: Optional[int] = None,
    ) -> DeploymentResponse:
        vm_config = self.create_vm_config(docker_compose_file, app_name, vcpu, memory, disk_size)
        issuance = self.issue_key(vm_config)
        envelope = encrypt_env_vars(entries, issuance.pubkey_hex)
        return self.deploy_with_encrypted_env(issuance, envelope)

    def deploy_simple_service(
        self,
        image: str,
        service_name: str,
        app_name: str,
        entries: Sequence = (),
        ports: Optional[Sequence[str]] = None,
        volumes: Optional[Sequence[str]] = None,
        command: Optional[Sequence[str]] = None,
        **resources,
    ) -> DeploymentResponse:
        pairs: List[EnvVarEntry] = [EnvVarEntry(*e) for e in entries]
        compose = build_simple_compose(
            image, service_name, [e.name for e in pairs], ports=ports, volumes=volumes, command=command,
        )
        return self.deploy_compose(compose, app_name, pairs, **resources)

    # ---------- Running deployments ----------

    def update_deployment(
        self,
        app_id: str,
        compose_content: Optional[str] = None,
        encrypted_env: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Swap the Compose file and/or the env envelope of a running app.
        The envelope must be produced against `get_compose(app_id).env_pubkey`.
        """
        current = self.client.get_compose(app_id)
        compose_file = dict(current.compose_file)
        if compose_content is not None:
            manifest = dict(compose_file.get("compose_manifest") or {})
            manifest["docker_compose_file"] = compose_content
            compose_file["compose_manifest"] = manifest
        details = self.client.update_compose(app_id, compose_file, encrypted_env)
        return {"status": "updated", "app_id": app_id, "details": details}

    def get_network_info(self, app_id: str) -> NetworkInfoResponse:
        return self.client.get_network_info(app_id)

    def get_system_stats(self, app_id: str) -> SystemStatsResponse:
        return self.client.get_system_stats(app_id)
