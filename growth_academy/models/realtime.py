from pydantic import BaseModel
from typing import Optional
from enum import Enum
import time

class MessageType(str, Enum):
    # Session guard notices
    SESSION_STATE = "session_state"
    SESSION_EXPIRED = "session_expired"

    # Status messages
    ERROR = "error"
    HEARTBEAT = "heartbeat"

class BaseMessage(BaseModel):
    type: MessageType
    timestamp: Optional[float] = None

    def __init__(self, **data):
        if 'timestamp' not in data:
            data['timestamp'] = time.time()
        super().__init__(**data)

class SessionStateMessage(BaseMessage):
    type: MessageType = MessageType.SESSION_STATE
    phase: str

class SessionExpiredMessage(BaseMessage):
    type: MessageType = MessageType.SESSION_EXPIRED
    title: str = "Session Expired"
    message: str
    action: str = "Return to Login"

class ErrorMessage(BaseMessage):
    type: MessageType = MessageType.ERROR
    message: str

class HeartbeatMessage(BaseMessage):
    type: MessageType = MessageType.HEARTBEAT
