"""
Vendor session lifecycle.

none -> initializing -> qr_ready -> authenticated -> disconnected, with
failed reachable on a failure report. Repeated reports of the current state
are allowed where the remote service polls (qr_ready, authenticated, failed).
"""

from typing import Dict, FrozenSet, Optional, Union

from ..enums import SessionStatus
from ..exceptions import InvalidSessionResponseError, InvalidSessionTransitionError

ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.NONE: frozenset(
        {SessionStatus.INITIALIZING, SessionStatus.QR_READY, SessionStatus.FAILED}
    ),
    SessionStatus.INITIALIZING: frozenset(
        {
            SessionStatus.QR_READY,
            SessionStatus.AUTHENTICATED,
            SessionStatus.FAILED,
            SessionStatus.DISCONNECTED,
        }
    ),
    SessionStatus.QR_READY: frozenset(
        {
            SessionStatus.QR_READY,
            SessionStatus.AUTHENTICATED,
            SessionStatus.FAILED,
            SessionStatus.DISCONNECTED,
        }
    ),
    SessionStatus.AUTHENTICATED: frozenset(
        {SessionStatus.AUTHENTICATED, SessionStatus.FAILED, SessionStatus.DISCONNECTED}
    ),
    SessionStatus.FAILED: frozenset({SessionStatus.FAILED, SessionStatus.DISCONNECTED}),
    SessionStatus.DISCONNECTED: frozenset({SessionStatus.NONE}),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(current: SessionStatus, target: SessionStatus) -> SessionStatus:
    """
    Validate a status change.

    Returns:
        The target status

    Raises:
        InvalidSessionTransitionError: If the change is not allowed
    """
    if not can_transition(current, target):
        raise InvalidSessionTransitionError(current.value, target.value)
    return target


def status_from_report(value: Optional[Union[str, SessionStatus]]) -> SessionStatus:
    """Map a status string reported by the WhatsApp API onto SessionStatus."""
    if isinstance(value, SessionStatus):
        return value
    try:
        return SessionStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidSessionResponseError(
            f"Unknown session status reported: {value}", reported_status=str(value)
        )
