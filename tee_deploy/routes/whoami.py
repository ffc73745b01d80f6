# tee_deploy/routes/whoami.py
from fastapi import APIRouter, Depends

from ..deps import AUTH_DEP, AUTH_TYPE
from ..security.auth import AuthPrincipal

router = APIRouter(tags=["meta"])


@router.get("/whoami")
def whoami(principal: AuthPrincipal = Depends(AUTH_DEP)):
    return {
        "auth_type": AUTH_TYPE,
        "principal": {
            "id": principal.id,
            "subject": principal.subject,
            "issuer": principal.issuer,
            "roles": principal.roles or [],
        },
    }
