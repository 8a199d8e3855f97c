import asyncio
from typing import Dict, Optional
from fastapi import WebSocket
import logging
from growth_academy.config import settings
from growth_academy.models.realtime import BaseMessage, ErrorMessage, HeartbeatMessage, SessionExpiredMessage

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Pushes session notices to the websocket of each client context"""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}  # context_id -> ws
        self.heartbeat_task: Optional[asyncio.Task] = None

    def start_background_tasks(self):
        """Start background tasks"""
        if self.heartbeat_task:
            self.heartbeat_task.cancel()
        self.heartbeat_task = asyncio.create_task(self.heartbeat_monitor())

    def stop_background_tasks(self):
        if self.heartbeat_task:
            self.heartbeat_task.cancel()
            self.heartbeat_task = None

    async def heartbeat_monitor(self):
        """Monitor connection health with heartbeat"""
        while True:
            try:
                await asyncio.sleep(settings.heartbeat_interval)
                await self.send_heartbeats()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in heartbeat monitor: {e}")

    async def send_heartbeats(self):
        """Send heartbeat messages to all active connections"""
        heartbeat_message = HeartbeatMessage().model_dump_json()

        dead = []
        for context_id, websocket in list(self.connections.items()):
            try:
                await websocket.send_text(heartbeat_message)
            except Exception as e:
                logger.warning(f"Heartbeat failed for context {context_id}: {e}")
                dead.append(context_id)

        for context_id in dead:
            self.disconnect(context_id)

    async def connect(self, websocket: WebSocket, context_id: str):
        await websocket.accept()
        previous = self.connections.get(context_id)
        self.connections[context_id] = websocket
        if previous is not None and previous is not websocket:
            try:
                await previous.close(code=1000, reason="Replaced by a newer connection")
            except Exception as e:
                logger.debug(f"Closing replaced connection for {context_id}: {e}")
        logger.info(f"Session channel opened for context {context_id}")

    def disconnect(self, context_id: str, websocket: WebSocket = None):
        current = self.connections.get(context_id)
        if current is not None and (websocket is None or current is websocket):
            del self.connections[context_id]
            logger.info(f"Session channel closed for context {context_id}")

    async def send_to_context(self, context_id: str, message: BaseMessage, retries: int = 2) -> bool:
        """Send message to a context with retry logic"""
        if context_id not in self.connections:
            return False

        websocket = self.connections[context_id]

        for attempt in range(retries + 1):
            try:
                await websocket.send_text(message.model_dump_json())
                return True
            except Exception as e:
                logger.warning(f"Error sending to context {context_id} (attempt {attempt + 1}): {e}")
                if attempt == retries:
                    logger.error(f"Failed to reach context {context_id} after {retries + 1} attempts")
                    self.disconnect(context_id, websocket)
                    return False
                await asyncio.sleep(0.1 * (attempt + 1))  # Exponential backoff

        return False

    def notify_session_expired(self, context_id: str, notice: str):
        """Schedule the expiry notice; callable from synchronous guard code"""
        if context_id not in self.connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop to deliver expiry notice to {context_id}")
            return
        loop.create_task(self.send_to_context(context_id, SessionExpiredMessage(message=notice)))

    async def send_error(self, websocket: WebSocket, error_message: str):
        """Send error message to websocket"""
        try:
            await websocket.send_text(ErrorMessage(message=error_message).model_dump_json())
        except Exception as e:
            if "close message has been sent" not in str(e):
                logger.error(f"Error sending error message: {e}")

# Global connection manager instance
connection_manager = ConnectionManager()
