from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, ValidationError
from typing import Optional
from growth_academy.config import settings
from growth_academy.errors import AuthError, StoreUnavailable
from growth_academy.models import Identity, StudentUser
from growth_academy.services.context_registry import ClientContext, ContextRegistry
from growth_academy.services.session_state import SessionPhase
from growth_academy.utils.auth_utils import (
    CONTEXT_HEADER, get_client_context, get_context_registry, is_admin_identity, wire_context
)
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

# Pydantic models for request/response
class SignInRequest(BaseModel):
    username: str
    password: str

class PasswordResetRequest(BaseModel):
    username: str

class AuthResponse(BaseModel):
    message: str
    user: dict
    context_id: str
    session: dict
    redirect: Optional[str] = None

def session_status(context: ClientContext) -> dict:
    guard = context.guard
    return {
        "phase": guard.phase.value,
        "identity": guard.state.identity,
        "notice": guard.notice,
    }

def landing_path(registry: ContextRegistry, identity: Identity) -> str:
    """Where a freshly signed-in user lands"""
    if is_admin_identity(identity.id):
        return "/admin"
    try:
        students = registry.store.list(settings.student_users_collection, {"email": identity.email}, limit=1)
    except StoreUnavailable as e:
        logger.warning(f"Could not look up student class for {identity.email}: {e}")
        students = []
    if students:
        try:
            return f"/class/{StudentUser.model_validate(students[0]).class_id}"
        except ValidationError as e:
            logger.error(f"Malformed student record for {identity.email}: {e}")
    return "/dashboard"

@router.post("/signin", response_model=AuthResponse)
async def signin(
    request: SignInRequest,
    context_id: Optional[str] = Header(None, alias=CONTEXT_HEADER),
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Sign in and claim the single active session for this account"""
    context = registry.get(context_id)
    if context is None:
        context = wire_context(registry.create())

    guard = context.guard
    if guard.phase == SessionPhase.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"phase": guard.phase.value, "message": guard.notice}
        )
    if guard.phase != SessionPhase.UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Already signed in, sign out first"
        )

    try:
        identity = context.identity_provider.sign_in(request.username, request.password)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

    guard.on_authenticated(identity)
    if guard.phase != SessionPhase.UNAUTHENTICATED:
        guard.start_monitoring()

    return AuthResponse(
        message="Login successful",
        user={"id": identity.id, "email": identity.email},
        context_id=context.context_id,
        session=session_status(context),
        redirect=landing_path(registry, identity),
    )

@router.post("/signout")
async def signout(context: ClientContext = Depends(get_client_context)):
    """Sign out and release the session for this account"""
    for run_id in list(context.quiz_runs):
        context.close_quiz_run(run_id)
    context.guard.logout()
    return {"message": "Signed out successfully", "session": session_status(context)}

@router.get("/session")
async def get_session(context: ClientContext = Depends(get_client_context)):
    """Current session phase and, once expired, the notice to show"""
    return session_status(context)

@router.post("/session/acknowledge")
async def acknowledge_session_expiry(context: ClientContext = Depends(get_client_context)):
    """Dismiss the expiry notice and return to the login page"""
    if context.guard.phase != SessionPhase.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session has not expired"
        )
    for run_id in list(context.quiz_runs):
        context.close_quiz_run(run_id)
    context.guard.acknowledge_expiry()
    return {"message": "Please log in again", "redirect": "/", "session": session_status(context)}

@router.post("/password-reset")
async def password_reset(
    request: PasswordResetRequest,
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Send a password reset email"""
    provider = registry.identity_factory()
    try:
        provider.send_password_reset(request.username)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS if e.rate_limited else status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {"message": "If an account exists, a password reset link has been sent."}
