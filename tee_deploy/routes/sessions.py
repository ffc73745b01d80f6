# tee_deploy/routes/sessions.py
"""
Operator/secret-owner hand-off over HTTP.

    operator  POST /sessions                 -> pubkey issued for a VM config
    owner     GET  /sessions/{id}/pubkey     -> encrypts locally
    owner     POST /sessions/{id}/envelope   -> hex envelope only
    operator  POST /sessions/{id}/deploy     -> forwarded unmodified
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..deployer import TeeDeployer
from ..deps import AUTH_DEP, get_deployer, get_store
from ..errors import ApiError, MalformedEnvelope, ProtocolError, TransportError
from ..models import CreateSessionIn, DeploymentResponse, EnvelopeIn, PubkeyOut, SessionOut
from ..protocol import DeploymentSession, SessionStore
from ..security.auth import AuthPrincipal
from ..security.authz import allow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _load(store: SessionStore, session_id: str) -> DeploymentSession:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found") from None


def _out(session: DeploymentSession) -> SessionOut:
    return SessionOut(
        session_id=session.session_id,
        stage=session.stage.value,
        app_env_encrypt_pubkey=session.issuance.pubkey_hex,
        vm_name=session.issuance.vm_config.get("name", ""),
        deployment=session.result,
    )


def _upstream(e: Exception) -> HTTPException:
    # do not leak upstream bodies to relay clients
    logger.error("Cloud API call failed: %s", e)
    return HTTPException(status_code=502, detail="Cloud API request failed")


@router.post("", response_model=SessionOut, status_code=201)
def create_session(
    body: CreateSessionIn,
    principal: AuthPrincipal = Depends(AUTH_DEP),
    store: SessionStore = Depends(get_store),
    deployer: TeeDeployer = Depends(get_deployer),
):
    allow(principal, "session:create")
    try:
        issuance = deployer.issue_key(body.vm_config)
    except (ApiError, TransportError) as e:
        raise _upstream(e)
    session = store.open(issuance)
    logger.info("Session %s opened by %s for %s", session.session_id, principal.id, body.vm_config.name)
    return _out(session)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(
    session_id: str,
    principal: AuthPrincipal = Depends(AUTH_DEP),
    store: SessionStore = Depends(get_store),
):
    allow(principal, "session:read")
    return _out(_load(store, session_id))


@router.get("/{session_id}/pubkey", response_model=PubkeyOut)
def get_pubkey(
    session_id: str,
    principal: AuthPrincipal = Depends(AUTH_DEP),
    store: SessionStore = Depends(get_store),
):
    allow(principal, "pubkey:read")
    session = _load(store, session_id)
    return PubkeyOut(session_id=session.session_id, app_env_encrypt_pubkey=session.issuance.pubkey_hex)


@router.post("/{session_id}/envelope", response_model=SessionOut)
def submit_envelope(
    session_id: str,
    body: EnvelopeIn,
    principal: AuthPrincipal = Depends(AUTH_DEP),
    store: SessionStore = Depends(get_store),
):
    allow(principal, "envelope:submit")
    session = _load(store, session_id)
    try:
        session.attach_envelope(body.encrypted_env)
    except MalformedEnvelope as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ProtocolError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _out(session)


@router.post("/{session_id}/deploy", response_model=SessionOut)
def deploy_session(
    session_id: str,
    principal: AuthPrincipal = Depends(AUTH_DEP),
    store: SessionStore = Depends(get_store),
    deployer: TeeDeployer = Depends(get_deployer),
):
    allow(principal, "session:deploy")
    session = _load(store, session_id)
    try:
        request = session.deliver()
    except ProtocolError as e:  # includes BindingViolation
        raise HTTPException(status_code=409, detail=str(e))

    try:
        deployment: DeploymentResponse = deployer.deploy_with_encrypted_env(session.issuance, request.encrypted_env)
    except (ApiError, TransportError) as e:
        session.fail_delivery()
        raise _upstream(e)
    except Exception:
        session.fail_delivery()
        raise

    session.consume(deployment)
    return _out(session)
