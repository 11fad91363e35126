import threading
from contextlib import contextmanager
from datetime import timezone
from typing import List, Tuple

import pymysql

from capture.ledger.storage import LedgerStore
from capture.models import CaptureRecord, ImageFormat

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS capture_records (
        record_id CHAR(36) NOT NULL PRIMARY KEY,
        owner_id VARCHAR(255) NOT NULL,
        url TEXT NOT NULL,
        width INT NOT NULL,
        height INT NOT NULL,
        image_format VARCHAR(16) NOT NULL,
        full_page TINYINT(1) NOT NULL,
        size_bytes BIGINT NOT NULL,
        created_at DATETIME(6) NOT NULL,
        INDEX idx_owner_created (owner_id, created_at, record_id)
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS capture_counters (
        owner_id VARCHAR(255) NOT NULL PRIMARY KEY,
        capture_count BIGINT NOT NULL DEFAULT 0
    ) ENGINE=InnoDB
    """,
)


def connect(config):
    """Opens a pymysql connection from CaptureConfig MySQL settings."""
    return pymysql.connect(
        host=config.mysql_host,
        port=config.mysql_port,
        user=config.mysql_user,
        password=config.mysql_password,
        database=config.mysql_database,
        autocommit=False,
    )


class MySQLLedgerStore(LedgerStore):
    """
    MySQL implementation of LedgerStore.
    Uses InnoDB transactions so the record insert and the counter upsert commit together.
    ``connection`` is a pymysql connection (autocommit off). The connection is shared
    by request threads, so every use is serialized by a lock, and it is pinged with
    reconnect before each use so a server restart or wait_timeout only costs a reconnect.
    """

    def __init__(self, connection):
        self._pool = connection
        self._lock = threading.Lock()

    @contextmanager
    def _session(self):
        with self._lock:
            self._pool.ping(reconnect=True)
            with self._pool.cursor() as cursor:
                yield cursor

    def ensure_schema(self) -> None:
        """Creates the ledger tables if they are missing."""
        with self._session() as cursor:
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
            self._pool.commit()

    def append(self, record: CaptureRecord) -> int:
        insert_sql = """
            INSERT INTO capture_records (
                record_id, owner_id, url, width, height,
                image_format, full_page, size_bytes, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        counter_sql = """
            INSERT INTO capture_counters (owner_id, capture_count) VALUES (%s, 1)
            ON DUPLICATE KEY UPDATE capture_count = capture_count + 1
        """
        count_sql = "SELECT capture_count FROM capture_counters WHERE owner_id = %s"

        with self._session() as cursor:
            try:
                # 1. Explicit transaction around record + counter
                self._pool.begin()
                cursor.execute(insert_sql, (
                    record.record_id, record.owner_id, record.url,
                    record.width, record.height, record.image_format.value,
                    int(record.full_page), record.size_bytes,
                    record.created_at.astimezone(timezone.utc).replace(tzinfo=None),
                ))
                # 2. Counter upsert in the same transaction
                cursor.execute(counter_sql, (record.owner_id,))
                cursor.execute(count_sql, (record.owner_id,))
                row = cursor.fetchone()
                self._pool.commit()
                return row[0] if row else 0
            except Exception:
                self._pool.rollback()
                raise

    def page(self, owner_id: str, limit: int, offset: int) -> Tuple[List[CaptureRecord], int]:
        total_sql = "SELECT COUNT(*) FROM capture_records WHERE owner_id = %s"
        page_sql = """
            SELECT record_id, owner_id, url, width, height,
                   image_format, full_page, size_bytes, created_at
            FROM capture_records
            WHERE owner_id = %s
            ORDER BY created_at DESC, record_id DESC
            LIMIT %s OFFSET %s
        """
        with self._session() as cursor:
            try:
                # Both reads inside one transaction see the same snapshot
                self._pool.begin()
                cursor.execute(total_sql, (owner_id,))
                total = cursor.fetchone()[0]
                cursor.execute(page_sql, (owner_id, limit, offset))
                rows = cursor.fetchall()
                self._pool.commit()
            except Exception:
                self._pool.rollback()
                raise
        return [self._row_to_record(row) for row in rows], total

    def count_for(self, owner_id: str) -> int:
        with self._session() as cursor:
            cursor.execute(
                "SELECT capture_count FROM capture_counters WHERE owner_id = %s",
                (owner_id,),
            )
            row = cursor.fetchone()
            # End the implicit read transaction so the next read sees fresh data
            self._pool.commit()
        return row[0] if row else 0

    @staticmethod
    def _row_to_record(row) -> CaptureRecord:
        created_at = row[8]
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return CaptureRecord(
            record_id=row[0],
            owner_id=row[1],
            url=row[2],
            width=row[3],
            height=row[4],
            image_format=ImageFormat(row[5]),
            full_page=bool(row[6]),
            size_bytes=row[7],
            created_at=created_at,
        )
