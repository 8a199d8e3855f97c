from fastapi import HTTPException, Depends, Header, status
from functools import lru_cache
from typing import Optional
from growth_academy.config import settings
from growth_academy.database import get_record_store
from growth_academy.services.context_registry import ClientContext, ContextRegistry
from growth_academy.services.session_state import SessionPhase
from growth_academy.utils.websocket_manager import connection_manager

CONTEXT_HEADER = "X-Context-Id"

@lru_cache
def get_context_registry() -> ContextRegistry:
    """Process-wide registry of client contexts"""
    return ContextRegistry(get_record_store())

def wire_context(context: ClientContext) -> ClientContext:
    """Forward expiry notices of a context to its websocket channel"""
    context.guard.add_expiry_listener(
        lambda notice: connection_manager.notify_session_expired(context.context_id, notice)
    )
    return context

async def get_client_context(
    context_id: Optional[str] = Header(None, alias=CONTEXT_HEADER),
    registry: ContextRegistry = Depends(get_context_registry),
) -> ClientContext:
    """Client context named by the request header"""
    context = registry.get(context_id)
    if not context:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown client context, please sign in"
        )
    return context

async def get_active_context(context: ClientContext = Depends(get_client_context)) -> ClientContext:
    """Require a live session; an expired one surfaces its notice"""
    guard = context.guard
    if guard.phase == SessionPhase.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"phase": guard.phase.value, "message": guard.notice}
        )
    if guard.phase in (SessionPhase.VALIDATING, SessionPhase.ESTABLISHING):
        guard.check()
        if guard.phase == SessionPhase.EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"phase": guard.phase.value, "message": guard.notice}
            )
    if not guard.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in"
        )
    return context

def is_admin_identity(identity_id: Optional[str]) -> bool:
    """The single administrator account"""
    return identity_id is not None and identity_id == settings.admin_user_id

def is_admin_context(context: ClientContext) -> bool:
    identity = context.guard.identity
    return is_admin_identity(identity.id if identity else None)

async def require_admin(context: ClientContext = Depends(get_active_context)) -> ClientContext:
    """Require admin privileges"""
    if not is_admin_context(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return context
