"""Service layer."""

from .session_state import ALLOWED_TRANSITIONS, can_transition, status_from_report, transition
from .usage_tracking_service import (
    ApiCallStatsSink,
    CompositeUsageSink,
    NoOpUsageSink,
    QueueUsageSink,
    UsageSink,
    create_usage_sink,
)
from .vendor_session_service import VendorSessionService

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ApiCallStatsSink",
    "CompositeUsageSink",
    "NoOpUsageSink",
    "QueueUsageSink",
    "UsageSink",
    "VendorSessionService",
    "can_transition",
    "create_usage_sink",
    "status_from_report",
    "transition",
]
