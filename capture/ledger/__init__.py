from capture.ledger.storage import LedgerStore
from capture.ledger.memory_storage import InMemoryLedgerStore
from capture.ledger.mysql_storage import MySQLLedgerStore
from capture.ledger.engine import CaptureLedger
