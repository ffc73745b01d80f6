# tee_deploy/security/authz.py
from fastapi import HTTPException

from .auth import OPERATOR, SECRET_OWNER

# The operator never touches envelopes it could swap, the owner never deploys.
POLICY = {
    "session:create":   {"any_of": [OPERATOR]},
    "session:read":     {"any_of": [OPERATOR, SECRET_OWNER]},
    "pubkey:read":      {"any_of": [SECRET_OWNER, OPERATOR]},
    "envelope:submit":  {"any_of": [SECRET_OWNER]},
    "session:deploy":   {"any_of": [OPERATOR]},
}


def _as_set(principal) -> set[str]:
    return set(principal.roles or [])


def require_roles(principal, *allowed: str) -> None:
    """Allow if principal has any role from `allowed`, otherwise 403."""
    if _as_set(principal).intersection(allowed):
        return
    raise HTTPException(status_code=403, detail="Forbidden")


def allow(principal, action: str) -> None:
    require_roles(principal, *POLICY[action]["any_of"])
