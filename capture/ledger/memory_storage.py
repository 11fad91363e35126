import threading
from collections import defaultdict
from typing import List, Tuple

from capture.ledger.storage import LedgerStore
from capture.models import CaptureRecord


class InMemoryLedgerStore(LedgerStore):
    """
    Process-local LedgerStore.
    One lock guards both the record lists and the counters, so an append and
    its counter increment are indivisible from any reader's point of view.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records = defaultdict(list)   # owner_id -> [CaptureRecord]
        self._counts = defaultdict(int)     # owner_id -> capture count
        self._ids = set()

    def append(self, record: CaptureRecord) -> int:
        with self._lock:
            if record.record_id in self._ids:
                raise ValueError(f"Duplicate capture record id {record.record_id}")
            self._ids.add(record.record_id)
            self._records[record.owner_id].append(record)
            self._counts[record.owner_id] += 1
            return self._counts[record.owner_id]

    def page(self, owner_id: str, limit: int, offset: int) -> Tuple[List[CaptureRecord], int]:
        with self._lock:
            owned = list(self._records.get(owner_id, ()))
        owned.sort(key=lambda r: r.sort_key, reverse=True)
        return owned[offset:offset + limit], len(owned)

    def count_for(self, owner_id: str) -> int:
        with self._lock:
            return self._counts.get(owner_id, 0)
