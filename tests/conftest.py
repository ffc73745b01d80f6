import pytest

from tee_deploy.crypto import recipient_public_key

# Static recipient key standing in for the guest side.
FIXED_PRIVATE_HEX = bytes(range(1, 33)).hex()


@pytest.fixture
def recipient():
    """(private_hex, public_hex) for a fixed test recipient."""
    return FIXED_PRIVATE_HEX, recipient_public_key(FIXED_PRIVATE_HEX)


@pytest.fixture
def vm_config_dict():
    return {
        "name": "secure-app",
        "compose_manifest": {
            "name": "secure-app",
            "features": ["kms", "tproxy-net"],
            "docker_compose_file": "services:\n  app:\n    image: nginx:alpine\n",
        },
        "vcpu": 1,
        "memory": 1024,
        "disk_size": 10,
        "teepod_id": 3,
        "image": "dstack-dev-0.3.5",
        "advanced_features": {
            "tproxy": True,
            "kms": True,
            "public_sys_info": True,
            "public_logs": True,
            "docker_config": {"username": "", "password": "", "registry": None},
            "listed": True,
        },
    }
