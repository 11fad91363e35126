from abc import ABC, abstractmethod
from typing import List, Tuple

from capture.models import CaptureRecord


class LedgerStore(ABC):
    """
    Abstract storage interface for capture records and per-identity counters.
    Contractual Requirements for Implementers:
    - append() MUST insert the record and increment its owner's counter as one
      atomic unit; a reader never sees one without the other.
    - page() MUST read the total and the slice from the same snapshot.
    - No update or delete operations.
    """

    @abstractmethod
    def append(self, record: CaptureRecord) -> int:
        """Atomically persist the record and bump the owner's counter. Returns the new count."""
        pass

    @abstractmethod
    def page(self, owner_id: str, limit: int, offset: int) -> Tuple[List[CaptureRecord], int]:
        """Return (records newest-first, total matching) for one owner."""
        pass

    @abstractmethod
    def count_for(self, owner_id: str) -> int:
        """Current capture counter for the owner (0 if unknown)."""
        pass
