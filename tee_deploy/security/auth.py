# tee_deploy/security/auth.py
import logging
import os
import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt  # PyJWT
from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)

AUTH_TYPE = os.getenv("AUTH_TYPE", "API_KEY").strip().upper()

# One key per side of the privilege split.
RELAY_OPERATOR_KEY = os.getenv("RELAY_OPERATOR_KEY", "")
RELAY_USER_KEY     = os.getenv("RELAY_USER_KEY", "")

JWT_ALG         = os.getenv("JWT_ALG", "HS256")
JWT_SIGNING_KEY = os.getenv("JWT_SIGNING_KEY", "")
JWT_AUDIENCE    = os.getenv("JWT_AUDIENCE", "tee-deploy-relay")
ISSUER          = os.getenv("ISSUER", "")

OPERATOR = "OPERATOR"
SECRET_OWNER = "SECRET_OWNER"


@dataclass
class AuthPrincipal:
    """Represents an authenticated principal."""
    id: str
    subject: Optional[str] = None
    issuer: Optional[str] = None
    roles: Optional[list[str]] = None


def _unauth(detail: str):
    logger.warning("Auth failed: %s", detail)
    raise HTTPException(status_code=401, detail="Unauthorized")


def _key_matches(presented: str, configured: str) -> bool:
    return bool(configured) and secrets.compare_digest(presented.encode(), configured.encode())


def _require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> AuthPrincipal:
    """Header-based API key auth; the key decides the role."""
    if not RELAY_OPERATOR_KEY and not RELAY_USER_KEY:
        _unauth("No relay API keys configured")
    if not x_api_key:
        _unauth("Missing X-API-Key header")
    if _key_matches(x_api_key, RELAY_OPERATOR_KEY):
        return AuthPrincipal(id="operator-key", subject="operator", issuer="local", roles=[OPERATOR])
    if _key_matches(x_api_key, RELAY_USER_KEY):
        return AuthPrincipal(id="user-key", subject="secret-owner", issuer="local", roles=[SECRET_OWNER])
    _unauth("Invalid API key")


_SPLIT_RE = re.compile(r"[,\s]+")


def _to_list(v: Any) -> list[str]:
    """Coerce common representations to list[str]."""
    if v is None:
        return []
    if isinstance(v, str):
        return [x for x in _SPLIT_RE.split(v.strip()) if x]
    if isinstance(v, (list, tuple, set)):
        return [str(x) for x in v if x]
    return []


def _extract_roles(payload: Dict[str, Any]) -> list[str]:
    roles: list[str] = []
    roles += _to_list(payload.get("roles"))
    roles += _to_list(payload.get("groups"))
    realm = payload.get("realm_access") or {}
    if isinstance(realm, dict):
        roles += _to_list(realm.get("roles"))
    out: list[str] = []
    for r in roles:
        if r not in out:
            out.append(r)
    return out


def _require_bearer(authorization: str | None = Header(default=None)) -> AuthPrincipal:
    """Validate a Bearer JWT; roles come from 'roles' / 'groups' / Keycloak realm roles."""
    if not authorization:
        _unauth("Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        _unauth("Malformed Authorization header")

    try:
        payload = jwt.decode(
            parts[1],
            JWT_SIGNING_KEY,
            algorithms=[JWT_ALG],
            audience=JWT_AUDIENCE,
            issuer=ISSUER or None,
            leeway=30,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        _unauth("Token expired")
    except jwt.InvalidAudienceError:
        _unauth("Bad audience")
    except jwt.InvalidIssuerError:
        _unauth("Bad issuer")
    except jwt.InvalidSignatureError:
        _unauth("Bad signature")
    except jwt.PyJWTError as e:
        _unauth(f"JWT error: {e}")

    return AuthPrincipal(
        id=payload["sub"],
        subject=payload.get("sub"),
        issuer=payload.get("iss"),
        roles=_extract_roles(payload),
    )


require_api_key = _require_api_key
require_bearer  = _require_bearer

__all__ = ["require_api_key", "require_bearer", "AuthPrincipal", "OPERATOR", "SECRET_OWNER"]
