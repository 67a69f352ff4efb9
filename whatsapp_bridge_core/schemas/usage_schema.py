from datetime import datetime
from typing import Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from ..constants import UsageEventType
from ..db.db_base import utc_now


class UsageEvent(BaseModel):
    """
    Usage accounting record.

    An api_call event is emitted for every API response received and carries
    the endpoint, method and status. A session_created event carries only the
    vendor that created the session.
    """

    event_type: UsageEventType = UsageEventType.API_CALL
    endpoint: Optional[str] = None
    method: Optional[str] = None
    response_code: Optional[int] = None
    vendor_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_response(cls, endpoint: str, method: str, response_code: int) -> "UsageEvent":
        """Build an event, dropping any query string from the endpoint."""
        return cls(endpoint=urlsplit(endpoint).path, method=method, response_code=response_code)

    @classmethod
    def session_created(cls, vendor_id: Union[int, str]) -> "UsageEvent":
        return cls(event_type=UsageEventType.SESSION_CREATED, vendor_id=str(vendor_id))

    @property
    def succeeded(self) -> bool:
        return self.response_code is not None and self.response_code < 400
