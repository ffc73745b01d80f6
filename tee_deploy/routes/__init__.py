# tee_deploy/routes/__init__.py
from fastapi import APIRouter
from .sessions import router as sessions_router
from .whoami import router as whoami_router

router = APIRouter()
router.include_router(sessions_router)
router.include_router(whoami_router)
