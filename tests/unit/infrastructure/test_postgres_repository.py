"""
Name: PostgreSQL Audit Store Tests

Responsibilities:
  - Validate SQL shape (idempotent insert, whitelisted ORDER BY, ILIKE search)
  - Validate row mapping and DatabaseError wrapping

Notes:
  - Offline unit tests: the pool and connection are MagicMocks
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from change_audit.crosscutting.exceptions import DatabaseError
from change_audit.domain import AuditEventType, AuditQuery, AuditRecord
from change_audit.infrastructure.repositories import PostgresAuditRecordRepository

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _row(record_id=None, **overrides):
    row = {
        "id": record_id or uuid4(),
        "actor_id": "7",
        "event": "updated",
        "entity_type": "shop.Product",
        "entity_id": "1",
        "before": {"price": "10.00"},
        "after": {"price": "12.00"},
        "ip_address": "10.0.0.1",
        "user_agent": "pytest",
        "url": "https://shop.test/products/1",
        "http_method": "PATCH",
        "route_name": "products.update",
        "auth_guard": "web",
        "is_critical": False,
        "description": "Product updated (1)",
        "snapshot": None,
        "created_at": NOW,
    }
    row.update(overrides)
    return tuple(row.values())


def _pool_with(conn):
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    pool.connection.return_value.__exit__.return_value = False
    return pool


def _record(**overrides):
    values = {"event": AuditEventType.UPDATED, "entity_type": "shop.Product"}
    values.update(overrides)
    return AuditRecord(**values)


class TestRecord:
    def test_insert_is_idempotent_and_returns_stored_row(self):
        record = _record(entity_id="1")
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = _row(record.id)
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        stored = repo.record(record)

        sql, params = conn.execute.call_args.args
        assert "ON CONFLICT (id) DO NOTHING" in sql
        assert params[0] == record.id
        assert stored.id == record.id
        assert stored.created_at == NOW

    def test_conflict_reads_existing_row(self):
        """R: Should return the stored copy on re-delivery."""
        record = _record()
        conn = MagicMock()
        insert_result = MagicMock()
        insert_result.fetchone.return_value = None
        select_result = MagicMock()
        select_result.fetchone.return_value = _row(record.id, actor_id="first")
        conn.execute.side_effect = [insert_result, select_result]
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        stored = repo.record(record)

        assert conn.execute.call_count == 2
        assert stored.actor_id == "first"

    def test_driver_error_is_wrapped(self):
        conn = MagicMock()
        original = RuntimeError("connection reset")
        conn.execute.side_effect = original
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        with pytest.raises(DatabaseError) as exc_info:
            repo.record(_record())

        assert exc_info.value.original_error is original


class TestGet:
    def test_maps_row_to_record(self):
        record_id = uuid4()
        conn = MagicMock()
        conn.execute.return_value.fetchall.return_value = [_row(record_id)]
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        record = repo.get(record_id)

        assert record.id == record_id
        assert record.event == AuditEventType.UPDATED
        assert dict(record.after) == {"price": "12.00"}
        assert record.route_name == "products.update"

    def test_missing_row(self):
        conn = MagicMock()
        conn.execute.return_value.fetchall.return_value = []
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        assert repo.get(uuid4()) is None


class TestSearch:
    def _repo(self, rows, counts=(10, 2)):
        conn = MagicMock()
        count_result = MagicMock()
        count_result.fetchall.return_value = [counts]
        rows_result = MagicMock()
        rows_result.fetchall.return_value = rows
        conn.execute.side_effect = [count_result, rows_result]
        return PostgresAuditRecordRepository(pool=_pool_with(conn)), conn

    def test_returns_page_with_counts(self):
        repo, _ = self._repo([_row(), _row()])

        page = repo.search(AuditQuery(entity_type="shop.Product"))

        assert page.total == 10
        assert page.filtered == 2
        assert len(page.items) == 2

    def test_order_by_uses_whitelisted_column(self):
        repo, conn = self._repo([])

        repo.search(AuditQuery(sort_by="method", sort_dir="asc"))

        sql = conn.execute.call_args_list[1].args[0]
        assert "ORDER BY http_method ASC, id ASC" in sql

    def test_filters_are_parameterized(self):
        repo, conn = self._repo([])

        repo.search(
            AuditQuery(
                entity_type="shop.Product",
                entity_id=1,
                actor_id="7",
                event="deleted",
                offset=20,
                limit=10,
            )
        )

        sql, params = conn.execute.call_args_list[1].args
        assert "entity_type = %s" in sql
        assert "event = %s" in sql
        assert params == ("shop.Product", "1", "7", "deleted", 10, 20)

    def test_search_escapes_like_wildcards(self):
        repo, conn = self._repo([])

        repo.search(AuditQuery(search="50%_off"))

        sql, params = conn.execute.call_args_list[0].args
        assert "ILIKE" in sql
        assert params[0] == "%50\\%\\_off%"

    def test_zero_limit_skips_row_query(self):
        conn = MagicMock()
        conn.execute.return_value.fetchall.return_value = [(4, 4)]
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        page = repo.search(AuditQuery(limit=0))

        assert page.items == []
        assert page.total == 4
        assert conn.execute.call_count == 1

    def test_query_error_is_wrapped(self):
        conn = MagicMock()
        conn.execute.side_effect = RuntimeError("timeout")
        repo = PostgresAuditRecordRepository(pool=_pool_with(conn))

        with pytest.raises(DatabaseError):
            repo.search(AuditQuery())
