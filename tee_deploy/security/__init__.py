# Re-export security primitives from a single namespace.
from .auth import require_api_key, require_bearer, AuthPrincipal, OPERATOR, SECRET_OWNER
from .authz import allow, require_roles

__all__ = [
    "require_api_key", "require_bearer", "AuthPrincipal", "OPERATOR", "SECRET_OWNER",
    "allow", "require_roles",
]
