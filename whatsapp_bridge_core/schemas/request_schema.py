from typing import Any, Optional

from pydantic import BaseModel, Field

from ..constants import HttpMethod, Limits


class RequestAttempt(BaseModel):
    """One outbound call as seen by the retry loop. Discarded after the call."""

    method: HttpMethod
    endpoint: str
    url: str
    timeout: float = Field(default=Limits.DEFAULT_TIMEOUT_SECONDS, gt=0)
    payload: Optional[Any] = None
    attempt: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=Limits.DEFAULT_MAX_RETRIES + 1, ge=1)
    is_upload: bool = False

    def next_attempt(self) -> int:
        self.attempt += 1
        return self.attempt
