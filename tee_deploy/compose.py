# tee_deploy/compose.py
from typing import Iterable, Optional, Sequence

import yaml

from .errors import ConfigurationError


def build_simple_compose(
    image: str,
    service_name: str,
    env_names: Iterable[str] = (),
    ports: Optional[Sequence[str]] = None,
    volumes: Optional[Sequence[str]] = None,
    command: Optional[Sequence[str]] = None,
) -> str:
    """
    Single-service Compose file.

    Environment variables are written as `${NAME}` references; the values
    reach the guest only through the encrypted envelope.
    """
    if not image or not service_name:
        raise ConfigurationError("image and service_name are required")

    service: dict = {"image": image}
    if ports:
        service["ports"] = [str(p) for p in ports]
    if volumes:
        service["volumes"] = list(volumes)
    if command:
        service["command"] = list(command)

    names = list(dict.fromkeys(env_names))  # dedupe, keep order
    if names:
        service["environment"] = {n: f"${{{n}}}" for n in names}

    return yaml.safe_dump({"services": {service_name: service}}, sort_keys=False)


def load_compose_file(path) -> str:
    """Read a Compose file and make sure it parses as a mapping with services."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(f"Failed to read compose file: {e}") from e
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Compose file is not valid YAML: {e}") from e
    if not isinstance(doc, dict) or "services" not in doc:
        raise ConfigurationError("Compose file has no 'services' section")
    return content
