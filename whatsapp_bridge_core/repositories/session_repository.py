"""
Persistence of vendor session records as per-vendor meta attributes.
"""

from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..constants import Limits, MetaKey
from ..db.db_vendor_meta_models import VendorMeta
from ..schemas.session_schema import DisconnectedSessionEntry, VendorSessionRecord
from ..utils.crud_helpers import delete_records, get_value, upsert_value

_RECORD_KEYS = (
    MetaKey.SESSION_CLIENT_ID,
    MetaKey.SESSION_NAME,
    MetaKey.SESSION_STATUS,
    MetaKey.SESSION_CREATED,
)


class VendorSessionRepository:
    """
    Reads and writes the one session record a vendor may hold.

    The record is spread over four meta keys; a vendor has a record exactly
    when the status key is present.
    """

    def __init__(self, session: Session, history_size: int = Limits.DISCONNECTED_HISTORY_SIZE):
        self.session = session
        self.history_size = history_size

    def _get_meta(self, vendor_id: str, key: MetaKey, default=None):
        return get_value(
            self.session,
            VendorMeta,
            {"vendor_id": vendor_id, "meta_key": key.value},
            "meta_value",
            default,
        )

    def _set_meta(self, vendor_id: str, key: MetaKey, value) -> None:
        upsert_value(
            self.session,
            VendorMeta,
            {"vendor_id": vendor_id, "meta_key": key.value},
            "meta_value",
            value,
        )

    def get(self, vendor_id: Union[int, str]) -> Optional[VendorSessionRecord]:
        """Return the vendor's session record, or None if it has none."""
        vendor_id = str(vendor_id)
        status = self._get_meta(vendor_id, MetaKey.SESSION_STATUS)
        if status is None:
            return None

        record = VendorSessionRecord(
            client_id=self._get_meta(vendor_id, MetaKey.SESSION_CLIENT_ID),
            session_name=self._get_meta(vendor_id, MetaKey.SESSION_NAME) or "",
            status=status,
        )
        created = self._get_meta(vendor_id, MetaKey.SESSION_CREATED)
        if created:
            record.created_at = created
        return record

    def save(self, vendor_id: Union[int, str], record: VendorSessionRecord) -> VendorSessionRecord:
        """Write every field of the record."""
        vendor_id = str(vendor_id)
        self._set_meta(vendor_id, MetaKey.SESSION_CLIENT_ID, record.client_id)
        self._set_meta(vendor_id, MetaKey.SESSION_NAME, record.session_name)
        self._set_meta(vendor_id, MetaKey.SESSION_CREATED, record.created_at.isoformat())
        self._set_meta(vendor_id, MetaKey.SESSION_STATUS, record.status.value)
        return record

    def delete(self, vendor_id: Union[int, str]) -> bool:
        """Remove the record. Returns True if anything was deleted."""
        vendor_id = str(vendor_id)
        deleted = 0
        for key in _RECORD_KEYS:
            deleted += delete_records(
                self.session, VendorMeta, {"vendor_id": vendor_id, "meta_key": key.value}
            )
        return deleted > 0

    def append_disconnected(
        self, vendor_id: Union[int, str], entry: DisconnectedSessionEntry
    ) -> List[DisconnectedSessionEntry]:
        """Append a history entry, keeping only the most recent ones."""
        vendor_id = str(vendor_id)
        # Copy so the change is seen as a new value rather than an in-place edit
        history = list(self._get_meta(vendor_id, MetaKey.DISCONNECTED_SESSIONS, []) or [])
        history.append(entry.model_dump(mode="json"))
        history = history[-self.history_size :]
        self._set_meta(vendor_id, MetaKey.DISCONNECTED_SESSIONS, history)
        return [DisconnectedSessionEntry(**item) for item in history]

    def get_disconnected_history(
        self, vendor_id: Union[int, str]
    ) -> List[DisconnectedSessionEntry]:
        history = self._get_meta(str(vendor_id), MetaKey.DISCONNECTED_SESSIONS, []) or []
        return [DisconnectedSessionEntry(**item) for item in history]
