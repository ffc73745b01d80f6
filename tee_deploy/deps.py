# tee_deploy/deps.py
from fastapi import HTTPException, Request

from .config import Settings
from .deployer import TeeDeployer
from .errors import ConfigurationError
from .protocol import SessionStore
from .security.auth import AUTH_TYPE, require_api_key, require_bearer

# Resolve auth mode once and expose the proper dependency for routers.
if AUTH_TYPE == "API_KEY":
    AUTH_DEP = require_api_key
elif AUTH_TYPE == "BEARER":
    AUTH_DEP = require_bearer
else:
    raise RuntimeError(f"Invalid AUTH_TYPE '{AUTH_TYPE}'. Expected 'API_KEY' or 'BEARER'.")


def get_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_deployer(request: Request) -> TeeDeployer:
    """Built on first use so the relay can start without cloud credentials."""
    deployer = getattr(request.app.state, "deployer", None)
    if deployer is None:
        try:
            deployer = TeeDeployer.from_settings(Settings.from_env())
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        request.app.state.deployer = deployer
    return deployer
