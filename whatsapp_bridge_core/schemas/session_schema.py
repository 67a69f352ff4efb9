"""
Schemas for vendor WhatsApp sessions.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..db.db_base import utc_now
from ..enums import SessionStatus


class VendorSessionRecord(BaseModel):
    """The single connection record a vendor may hold."""

    model_config = ConfigDict(validate_assignment=True)

    client_id: Optional[str] = Field(None, description="Opaque id assigned by the WhatsApp API")
    session_name: str = Field(..., description="Human-readable session name")
    status: SessionStatus = Field(default=SessionStatus.INITIALIZING)
    created_at: datetime = Field(default_factory=utc_now)


class DisconnectedSessionEntry(BaseModel):
    """History entry written when a vendor disconnects."""

    client_id: Optional[str] = None
    disconnected_at: datetime = Field(default_factory=utc_now)


class SessionCreationResult(BaseModel):
    record: VendorSessionRecord
    qr_code: Optional[str] = None


class DisconnectResult(BaseModel):
    client_id: Optional[str] = None
    remote_disconnected: bool = False
