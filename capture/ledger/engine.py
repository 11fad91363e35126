"""
FILE DESCRIPTION: Capture Ledger facade.
The only component allowed to mutate capture records or identity counters.
KEY FUNCTIONS/CLASSES: CaptureLedger
"""

from capture.errors import InvalidRequest, LedgerWriteFailed
from capture.ledger.storage import LedgerStore
from capture.logger import get_logger
from capture.models import CaptureRecord, HistoryPage

logger = get_logger("ledger")


class CaptureLedger:
    """
    Append-only record store keyed by owning identity.
    Invariants:
    - append() is all-or-nothing: record and counter change together or not at all.
    - An identity's counter equals the number of its records outside an in-flight append.
    - History is newest-first by created_at, ties broken by record id (descending).
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    def append(self, record: CaptureRecord) -> int:
        try:
            count = self._store.append(record)
        except Exception as e:
            logger.error(f"[LEDGER] Append failed for record {record.record_id} ({record.owner_id}): {e}")
            raise LedgerWriteFailed()
        logger.info(f"[LEDGER] Recorded {record.record_id} for {record.owner_id} (count={count})")
        return count

    def query(self, identity_id: str, limit: int, offset: int) -> HistoryPage:
        if limit < 0 or offset < 0:
            raise InvalidRequest("limit and offset must not be negative")
        records, total = self._store.page(identity_id, limit, offset)
        return HistoryPage(records=list(records), total=total, limit=limit, offset=offset)

    def count_for(self, identity_id: str) -> int:
        return self._store.count_for(identity_id)
