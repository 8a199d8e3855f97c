from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class Identity(BaseModel):
    """Authenticated user as reported by the identity provider"""
    id: str
    email: Optional[str] = None


class SessionRecord(BaseModel):
    """Shared record naming the login token that is authoritative for an identity"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    active_session_id: str = Field(alias="activeSessionId")
    last_login: datetime = Field(alias="lastLogin")

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_store(cls, data: Optional[dict]) -> Optional["SessionRecord"]:
        if not data:
            return None
        return cls.model_validate(data)
