from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
import logging
from growth_academy.models.realtime import SessionExpiredMessage, SessionStateMessage
from growth_academy.services.context_registry import ContextRegistry
from growth_academy.services.session_state import SessionPhase
from growth_academy.utils.auth_utils import get_context_registry
from growth_academy.utils.websocket_manager import connection_manager

router = APIRouter()

logger = logging.getLogger(__name__)

@router.websocket("/ws/session/{context_id}")
async def websocket_session_endpoint(
    websocket: WebSocket,
    context_id: str,
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Push channel for session notices of one client context"""
    context = registry.get(context_id)
    if not context:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unknown client context")
        return

    await connection_manager.connect(websocket, context_id)

    guard = context.guard
    await connection_manager.send_to_context(context_id, SessionStateMessage(phase=guard.phase.value))
    if guard.phase == SessionPhase.EXPIRED:
        await connection_manager.send_to_context(context_id, SessionExpiredMessage(message=guard.notice))

    try:
        while True:
            # Clients only send keep-alives; notices flow server -> client
            await websocket.receive_text()
            context.touch()
    except WebSocketDisconnect:
        logger.info(f"Session channel for context {context_id} disconnected")
    except Exception as e:
        logger.error(f"Unexpected error in session websocket: {e}")
        await connection_manager.send_error(websocket, "Session channel error")
    finally:
        connection_manager.disconnect(context_id, websocket)
