"""
Verification of the MySQL ledger transaction sequence.
"""

import unittest
from datetime import datetime
from unittest.mock import MagicMock

from capture.ledger.mysql_storage import SCHEMA_STATEMENTS, MySQLLedgerStore
from capture.models import ImageFormat
from tests.ledger_test import make_record


class TestMySQLLedgerStore(unittest.TestCase):
    def setUp(self):
        self.mock_pool = MagicMock()
        self.mock_cursor = self.mock_pool.cursor.return_value.__enter__.return_value
        self.store = MySQLLedgerStore(self.mock_pool)

    def test_append_commits_record_and_counter_together(self):
        """Scenario: Insert record -> upsert counter -> read count -> commit."""
        self.mock_cursor.fetchone.return_value = (3,)
        record = make_record("A", record_id="rec-1")

        count = self.store.append(record)

        self.assertEqual(count, 3)
        self.mock_pool.begin.assert_called_once()
        self.mock_pool.commit.assert_called_once()
        self.mock_pool.rollback.assert_not_called()
        self.assertEqual(self.mock_cursor.execute.call_count, 3)
        insert_sql, insert_params = self.mock_cursor.execute.call_args_list[0][0]
        self.assertIn("INSERT INTO capture_records", insert_sql)
        self.assertEqual(insert_params[0], "rec-1")
        self.assertEqual(insert_params[5], "png")
        self.assertIsNone(insert_params[8].tzinfo)
        counter_sql = self.mock_cursor.execute.call_args_list[1][0][0]
        self.assertIn("ON DUPLICATE KEY UPDATE capture_count = capture_count + 1", counter_sql)

    def test_append_rolls_back_when_counter_update_fails(self):
        """Scenario: Record insert succeeds but counter upsert fails -> nothing is committed."""
        self.mock_cursor.execute.side_effect = [None, RuntimeError("lock wait timeout")]

        with self.assertRaises(RuntimeError):
            self.store.append(make_record("A"))

        self.mock_pool.rollback.assert_called_once()
        self.mock_pool.commit.assert_not_called()

    def test_page_reads_total_and_rows_in_one_transaction(self):
        self.mock_cursor.fetchone.return_value = (5,)
        self.mock_cursor.fetchall.return_value = [
            ("rec-2", "A", "http://example.test", 800, 600, "jpeg", 1, 99, datetime(2026, 1, 6, 5, 33)),
            ("rec-1", "A", "http://example.test", 800, 600, "png", 0, 42, datetime(2026, 1, 6, 5, 32)),
        ]

        records, total = self.store.page("A", limit=2, offset=0)

        self.assertEqual(total, 5)
        self.assertEqual([r.record_id for r in records], ["rec-2", "rec-1"])
        self.assertEqual(records[0].image_format, ImageFormat.JPEG)
        self.assertTrue(records[0].full_page)
        self.assertIsNotNone(records[0].created_at.tzinfo)
        page_sql, page_params = self.mock_cursor.execute.call_args_list[1][0]
        self.assertIn("ORDER BY created_at DESC, record_id DESC", page_sql)
        self.assertEqual(page_params, ("A", 2, 0))
        self.mock_pool.begin.assert_called_once()
        self.mock_pool.commit.assert_called_once()

    def test_connection_is_revived_before_each_transaction(self):
        """Scenario: Server dropped the idle connection -> ping(reconnect=True) runs before any SQL."""
        self.mock_cursor.fetchone.return_value = (1,)
        self.store.append(make_record("A"))

        names = [c[0] for c in self.mock_pool.mock_calls]
        self.assertLess(names.index("ping"), names.index("cursor"))
        self.assertLess(names.index("ping"), names.index("begin"))
        self.mock_pool.ping.assert_called_once_with(reconnect=True)

    def test_every_operation_pings(self):
        self.mock_cursor.fetchone.return_value = (0,)
        self.mock_cursor.fetchall.return_value = []
        self.store.append(make_record("A"))
        self.store.page("A", limit=10, offset=0)
        self.store.count_for("A")
        self.store.ensure_schema()
        self.assertEqual(self.mock_pool.ping.call_count, 4)

    def test_unreachable_server_fails_before_transaction(self):
        self.mock_pool.ping.side_effect = RuntimeError("(2003, \"Can't connect to MySQL server\")")

        with self.assertRaises(RuntimeError):
            self.store.append(make_record("A"))

        self.mock_pool.begin.assert_not_called()
        self.mock_cursor.execute.assert_not_called()
        # The lock was released, so the next call is not blocked
        self.mock_pool.ping.side_effect = None
        self.mock_cursor.fetchone.return_value = (1,)
        self.assertEqual(self.store.append(make_record("A")), 1)

    def test_count_for_unknown_owner(self):
        self.mock_cursor.fetchone.return_value = None
        self.assertEqual(self.store.count_for("nobody"), 0)

    def test_ensure_schema(self):
        self.store.ensure_schema()
        self.assertEqual(self.mock_cursor.execute.call_count, len(SCHEMA_STATEMENTS))
        self.mock_pool.commit.assert_called_once()


if __name__ == "__main__":
    unittest.main()
