# tee_deploy/client.py
"""
Thin client for the Phala Cloud API.

One method per endpoint, no retries: a failed call surfaces as ApiError
(non-2xx) or TransportError (never reached the server). Callers decide
whether to try again.
"""
import logging
from typing import Any, Dict, Optional

import requests

from .config import DEFAULT_API_ENDPOINT, Settings
from .errors import ApiError, TransportError
from .models import (
    ComposeResponse, DeploymentResponse, NetworkInfoResponse, PubkeyResponse,
    SystemStatsResponse, TeePodDiscoveryResponse, VmConfig,
)

logger = logging.getLogger(__name__)

DISCOVERY_TIMEOUT = 15


def _as_body(vm_config) -> Dict[str, Any]:
    if isinstance(vm_config, VmConfig):
        return vm_config.model_dump(mode="json")
    return dict(vm_config)


class TeeClient:
    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_ENDPOINT,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "User-Agent": "phala-tee-deploy-python",
        })

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "TeeClient":
        return cls(settings.api_key, settings.api_endpoint, settings.http_timeout, session=session)

    def _request(self, method: str, path: str, json: Any = None, timeout: Optional[float] = None) -> Any:
        url = f"{self.api_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, json=json, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
            raise TransportError(f"{method} {url}: {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.warning("%s %s -> %s", method, path, resp.status_code)
            if resp.status_code >= 500 and "Bad Gateway" in (resp.text or ""):
                logger.warning("Upstream gateway error; the API server may be unreachable")
            raise ApiError(resp.status_code, resp.text)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, f"Response is not JSON: {e}") from e

    # ---------- Discovery & key issuance ----------

    def get_available_teepods(self) -> TeePodDiscoveryResponse:
        data = self._request("GET", "/teepods/available", timeout=DISCOVERY_TIMEOUT)
        return TeePodDiscoveryResponse.model_validate(data)

    def get_pubkey_for_config(self, vm_config) -> PubkeyResponse:
        data = self._request("POST", "/cvms/pubkey/from_cvm_configuration", json=_as_body(vm_config))
        return PubkeyResponse.model_validate(data)

    # ---------- Deploy ----------

    def deploy_with_encrypted_env(
        self,
        vm_config,
        encrypted_env: str,
        app_env_encrypt_pubkey: str,
        app_id_salt: str,
    ) -> DeploymentResponse:
        """Config, envelope and salt go out exactly as received."""
        body = _as_body(vm_config)
        body["encrypted_env"] = encrypted_env
        body["app_env_encrypt_pubkey"] = app_env_encrypt_pubkey
        body["app_id_salt"] = app_id_salt
        data = self._request("POST", "/cvms/from_cvm_configuration", json=body)
        return DeploymentResponse.model_validate(data)

    def get_compose(self, app_id: str) -> ComposeResponse:
        return ComposeResponse.model_validate(self._request("GET", f"/cvms/{app_id}/compose"))

    def update_compose(self, app_id: str, compose_file: Dict[str, Any], encrypted_env: Optional[str] = None) -> Any:
        body: Dict[str, Any] = {"compose_manifest": compose_file}
        if encrypted_env is not None:
            body["encrypted_env"] = encrypted_env
        return self._request("PUT", f"/cvms/{app_id}/compose", json=body)

    # ---------- Observability ----------

    def get_network_info(self, app_id: str) -> NetworkInfoResponse:
        return NetworkInfoResponse.model_validate(self._request("GET", f"/cvms/{app_id}/network"))

    def get_system_stats(self, app_id: str) -> SystemStatsResponse:
        return SystemStatsResponse.model_validate(self._request("GET", f"/cvms/{app_id}/stats"))

    def get_attestation(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/cvms/{cvm_id}/attestation")

    # ---------- Lifecycle ----------

    def get_cvm(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/cvms/{cvm_id}")

    def get_state(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/cvms/{cvm_id}/state")

    def start_cvm(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/cvms/{cvm_id}/start")

    def stop_cvm(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/cvms/{cvm_id}/stop")

    def shutdown_cvm(self, cvm_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/cvms/{cvm_id}/shutdown")

    def delete_cvm(self, cvm_id: str) -> None:
        self._request("DELETE", f"/cvms/{cvm_id}")
