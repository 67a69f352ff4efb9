"""
Service for the per-vendor WhatsApp session lifecycle.

Keeps the locally persisted session record in step with the WhatsApp API
server. Every status change goes through the session state machine and is
logged as "Session transition: <from> -> <to>".
"""

from typing import Any, Dict, List, Optional, Union

from ..context.vendor_context import vendor_context
from ..enums import SessionStatus
from ..exceptions import (
    BaseError,
    InvalidSessionResponseError,
    SessionAlreadyExistsError,
    SessionNotFoundError,
    validation_failed,
)
from ..repositories.session_repository import VendorSessionRepository
from ..schemas.session_schema import (
    DisconnectedSessionEntry,
    DisconnectResult,
    SessionCreationResult,
    VendorSessionRecord,
)
from ..schemas.usage_schema import UsageEvent
from ..utils.logger import get_logger
from .session_state import can_transition, status_from_report, transition
from .usage_tracking_service import NoOpUsageSink, UsageSink

VendorId = Union[int, str]


class VendorSessionService:
    """
    Creates, polls and tears down vendor sessions.

    At most one session record exists per vendor. A record left in the
    disconnected state (reported by the server) is cleared when the vendor
    creates a new session; any other existing record blocks creation.
    """

    def __init__(
        self,
        api_client,
        repository: VendorSessionRepository,
        usage_sink: Optional[UsageSink] = None,
    ):
        self.api_client = api_client
        self.repository = repository
        self.usage_sink = usage_sink or NoOpUsageSink()
        self.logger = get_logger()

    # ==================== HELPERS ====================

    def _require_session(self, vendor_id: VendorId) -> VendorSessionRecord:
        record = self.repository.get(vendor_id)
        if record is None:
            raise SessionNotFoundError(vendor_id=str(vendor_id))
        return record

    def _require_client_id(self, vendor_id: VendorId) -> VendorSessionRecord:
        record = self._require_session(vendor_id)
        if not record.client_id:
            raise SessionNotFoundError(
                "Session has no client id", vendor_id=str(vendor_id), status=record.status.value
            )
        return record

    def _log_transition(
        self, vendor_id: VendorId, from_status: SessionStatus, to_status: SessionStatus
    ) -> None:
        self.logger.info(
            f"Session transition: {from_status.value} -> {to_status.value}",
            extra={"session_vendor": str(vendor_id)},
        )

    def _apply_status(
        self, vendor_id: VendorId, record: VendorSessionRecord, target: SessionStatus
    ) -> VendorSessionRecord:
        previous = record.status
        if target is SessionStatus.FAILED:
            # A failure report always wins
            record.status = SessionStatus.FAILED
        else:
            record.status = transition(previous, target)
        self.repository.save(vendor_id, record)
        if previous is not record.status:
            self._log_transition(vendor_id, previous, record.status)
        return record

    def _clear_record(self, vendor_id: VendorId, record: VendorSessionRecord) -> None:
        self.repository.delete(vendor_id)
        self.repository.append_disconnected(
            vendor_id, DisconnectedSessionEntry(client_id=record.client_id)
        )

    # ==================== OPERATIONS ====================

    def get_session(self, vendor_id: VendorId) -> Optional[VendorSessionRecord]:
        return self.repository.get(vendor_id)

    def create_session(
        self,
        vendor_id: VendorId,
        session_name: str,
        vendor_data: Optional[Dict[str, Any]] = None,
    ) -> SessionCreationResult:
        """
        Create a WhatsApp session for a vendor.

        Raises:
            SessionAlreadyExistsError: The vendor already has a session record
            InvalidSessionResponseError: The server answered without client_id or qr_code
            ApiError, TransientNetworkError, AuthenticationError: From the API client
        """
        if not session_name or not str(session_name).strip():
            raise validation_failed("session_name", session_name, "must not be empty")

        with vendor_context(vendor_id):
            existing = self.repository.get(vendor_id)
            if existing is not None:
                if existing.status is not SessionStatus.DISCONNECTED:
                    raise SessionAlreadyExistsError(
                        vendor_id=str(vendor_id), status=existing.status.value
                    )
                self._clear_record(vendor_id, existing)
                self._log_transition(vendor_id, SessionStatus.DISCONNECTED, SessionStatus.NONE)

            response = self.api_client.post(
                "sessions",
                {
                    "name": session_name,
                    "vendor_id": vendor_id,
                    "vendor_data": vendor_data or {},
                },
            )

            body = response if isinstance(response, dict) else {}
            client_id = body.get("client_id")
            qr_code = body.get("qr_code")

            if not client_id or not qr_code:
                status = transition(SessionStatus.NONE, SessionStatus.FAILED)
                record = VendorSessionRecord(
                    client_id=client_id, session_name=session_name, status=status
                )
                self.repository.save(vendor_id, record)
                self._log_transition(vendor_id, SessionStatus.NONE, status)
                raise InvalidSessionResponseError(
                    "Session creation response is missing client_id or qr_code",
                    vendor_id=str(vendor_id),
                )

            status = transition(SessionStatus.NONE, SessionStatus.QR_READY)
            record = VendorSessionRecord(
                client_id=str(client_id), session_name=session_name, status=status
            )
            self.repository.save(vendor_id, record)
            self._log_transition(vendor_id, SessionStatus.NONE, status)

            self._associate_vendor(record.client_id, vendor_id)
            self._track_session_created(vendor_id)

            return SessionCreationResult(record=record, qr_code=qr_code)

    def _associate_vendor(self, client_id: str, vendor_id: VendorId) -> None:
        try:
            self.api_client.put(f"sessions/{client_id}/vendor", {"vendor_id": vendor_id})
        except BaseError as e:
            self.logger.warning(
                "Failed to associate vendor with session",
                extra={"client_id": client_id, "error_message": e.message},
            )

    def _track_session_created(self, vendor_id: VendorId) -> None:
        try:
            self.usage_sink.record(UsageEvent.session_created(vendor_id))
        except Exception as e:
            self.logger.warning(
                "Failed to record session creation",
                extra={"session_vendor": str(vendor_id), "error_message": str(e)},
            )

    def check_status(self, vendor_id: VendorId) -> VendorSessionRecord:
        """
        Poll the server for the session status and persist it.

        Raises:
            SessionNotFoundError: The vendor has no session with a client id
            InvalidSessionResponseError: The server reported no or an unknown status
            InvalidSessionTransitionError: The reported status is not reachable
        """
        with vendor_context(vendor_id):
            record = self._require_client_id(vendor_id)
            response = self.api_client.get(f"sessions/{record.client_id}/status")

            reported = response.get("status") if isinstance(response, dict) else None
            if not reported:
                raise InvalidSessionResponseError(
                    "Status response has no status", vendor_id=str(vendor_id)
                )

            return self._apply_status(vendor_id, record, status_from_report(reported))

    def disconnect(self, vendor_id: VendorId) -> DisconnectResult:
        """
        Disconnect the vendor's session.

        The local record is removed whatever the server answers.
        """
        with vendor_context(vendor_id):
            record = self._require_session(vendor_id)

            remote_disconnected = False
            if record.client_id:
                try:
                    self.api_client.delete(f"sessions/{record.client_id}")
                    remote_disconnected = True
                except Exception as e:
                    self.logger.warning(
                        "Remote disconnect failed; removing local session anyway",
                        extra={"client_id": record.client_id, "error_message": str(e)},
                    )

            if can_transition(record.status, SessionStatus.DISCONNECTED):
                self._log_transition(vendor_id, record.status, SessionStatus.DISCONNECTED)
            self._clear_record(vendor_id, record)

            return DisconnectResult(
                client_id=record.client_id, remote_disconnected=remote_disconnected
            )

    def get_qr_code(self, vendor_id: VendorId) -> Optional[str]:
        with vendor_context(vendor_id):
            record = self._require_client_id(vendor_id)
            response = self.api_client.get(f"sessions/{record.client_id}/qr")
            if not isinstance(response, dict):
                return None
            return response.get("qr_code")

    def list_remote_sessions(self, vendor_id: VendorId) -> List[Dict[str, Any]]:
        """Sessions the server holds for the vendor; [] when the answer has no list."""
        with vendor_context(vendor_id):
            response = self.api_client.get(f"vendor/{vendor_id}/sessions")
            if isinstance(response, dict) and isinstance(response.get("sessions"), list):
                return response["sessions"]
            return []

    def update_metadata(self, vendor_id: VendorId, metadata: Dict[str, Any]) -> Any:
        with vendor_context(vendor_id):
            record = self._require_client_id(vendor_id)
            return self.api_client.put(f"sessions/{record.client_id}/metadata", metadata)

    def get_disconnected_history(self, vendor_id: VendorId) -> List[DisconnectedSessionEntry]:
        return self.repository.get_disconnected_history(vendor_id)
