import unittest
from unittest.mock import MagicMock, patch

import psycopg2

from support_agent.core.errors import ErrorKind, StoreFailure
from support_agent.rag.vector_store import PgVectorStore


def _mock_pool():
    pool = MagicMock()
    conn = pool.getconn.return_value
    cur = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cur
    return pool, conn, cur


def _executed_sql(cur) -> list[str]:
    return [" ".join(str(c.args[0]).split()) for c in cur.execute.call_args_list]


@patch("support_agent.db.register_vector")
class PgVectorStoreTests(unittest.TestCase):
    def test_schema_is_created_once(self, mock_register):
        pool, _, cur = _mock_pool()
        cur.fetchone.return_value = (0,)
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        store.count()
        store.count()

        create_calls = [s for s in _executed_sql(cur) if s.startswith("CREATE EXTENSION")]
        self.assertEqual(len(create_calls), 1)
        # Connections are always handed back to the pool.
        self.assertEqual(pool.getconn.call_count, pool.putconn.call_count)

    def test_query_maps_rows_to_hits_in_order(self, mock_register):
        pool, _, cur = _mock_pool()
        cur.fetchall.return_value = [
            ("id-1", "first", {"source": "a.txt"}, 0.12),
            ("id-2", "second", None, 0.4),
        ]
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        hits = store.query([0.1, 0.2, 0.3], 2)

        self.assertEqual([h.id for h in hits], ["id-1", "id-2"])
        self.assertEqual(hits[0].metadata, {"source": "a.txt"})
        self.assertEqual(hits[1].metadata, {})
        self.assertAlmostEqual(hits[0].distance, 0.12)
        search_sql = [s for s in _executed_sql(cur) if "<=>" in s]
        self.assertEqual(len(search_sql), 1)
        self.assertIn("WHERE collection_id = %s", search_sql[0])
        self.assertEqual(cur.execute.call_args_list[-1].args[1], ([0.1, 0.2, 0.3], "docs", 2))

    def test_query_with_non_positive_k_returns_nothing(self, mock_register):
        pool, _, _ = _mock_pool()
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)
        self.assertEqual(store.query([1.0], 0), [])
        pool.getconn.assert_not_called()

    @patch("support_agent.rag.vector_store.execute_values")
    def test_upsert_writes_all_rows_in_one_statement(self, mock_execute_values, mock_register):
        pool, _, _ = _mock_pool()
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        written = store.upsert(
            ["00000000-0000-0000-0000-000000000001", "00000000-0000-0000-0000-000000000002"],
            [[0.1, 0.2], [0.3, 0.4]],
            ["a", "b"],
            [{"chunkIndex": 0}, {"chunkIndex": 1}],
        )

        self.assertEqual(written, 2)
        self.assertEqual(mock_execute_values.call_count, 1)
        sql, rows = mock_execute_values.call_args.args[1], mock_execute_values.call_args.args[2]
        self.assertIn("ON CONFLICT (id) DO UPDATE", sql)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0][1], "docs")

    def test_upsert_rejects_mismatched_lengths(self, mock_register):
        pool, _, _ = _mock_pool()
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)
        with self.assertRaises(ValueError):
            store.upsert(["a"], [[0.1], [0.2]], ["x"], [{}])

    def test_get_by_filter_uses_jsonb_containment(self, mock_register):
        pool, _, cur = _mock_pool()
        cur.fetchall.return_value = [("id-1", {"documentId": "d1"})]
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        result = store.get_by_filter({"documentId": "d1"})

        self.assertEqual(result.ids, ["id-1"])
        self.assertEqual(result.metadatas, [{"documentId": "d1"}])
        self.assertTrue(any("meta @> %s::jsonb" in s for s in _executed_sql(cur)))

    def test_delete_by_ids_skips_database_for_empty_list(self, mock_register):
        pool, _, _ = _mock_pool()
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)
        self.assertEqual(store.delete_by_ids([]), 0)
        pool.getconn.assert_not_called()

    def test_drop_collection_forces_schema_check_on_next_use(self, mock_register):
        pool, _, cur = _mock_pool()
        cur.rowcount = 3
        cur.fetchone.return_value = (0,)
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        self.assertEqual(store.drop_collection(), 3)
        store.count()

        create_calls = [s for s in _executed_sql(cur) if s.startswith("CREATE EXTENSION")]
        self.assertEqual(len(create_calls), 2)

    @patch("support_agent.core.reliability.time.sleep", return_value=None)
    def test_database_errors_surface_as_store_failure(self, _mock_sleep, mock_register):
        pool, _, cur = _mock_pool()
        cur.execute.side_effect = psycopg2.OperationalError("connection refused")
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        with self.assertRaises(StoreFailure) as ctx:
            store.count()

        self.assertEqual(ctx.exception.kind, ErrorKind.STORE_FAILURE)
        self.assertTrue(ctx.exception.retryable)
        self.assertIsNotNone(ctx.exception.__cause__)

    def test_non_transient_errors_are_not_retried(self, mock_register):
        pool, _, cur = _mock_pool()
        cur.execute.side_effect = psycopg2.ProgrammingError("syntax error")
        store = PgVectorStore(pool, collection_name="docs", statement_timeout_ms=1000)

        with self.assertRaises(StoreFailure) as ctx:
            store.count()

        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(cur.execute.call_count, 1)


if __name__ == "__main__":
    unittest.main()
