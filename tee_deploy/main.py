# tee_deploy/main.py
import os

from fastapi import FastAPI

from .logging_config import setup_logging
from .protocol import SessionStore
from .routes import router


def create_app(deployer=None) -> FastAPI:
    """Relay app. Pass a deployer to bypass env-based construction (tests, embedding)."""
    app = FastAPI(title="tee-deploy-relay")
    app.state.sessions = SessionStore()
    app.state.deployer = deployer
    app.include_router(router)

    # ---------- Health ----------
    @app.get("/health")
    def health():
        return {"status": "ok", "sessions": len(app.state.sessions)}

    @app.get("/healthz")
    def healthz():
        # Alias commonly used by probes
        return health()

    return app


setup_logging(os.getenv("LOG_LEVEL", "INFO"))
app = create_app()
