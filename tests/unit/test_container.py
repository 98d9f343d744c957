"""
Name: Composition Root Tests

Responsibilities:
  - Validate that settings select the store and dispatcher implementations
  - Validate singleton caching and reset
  - Validate the end-to-end path: emitter -> dispatcher -> store
"""

from unittest.mock import MagicMock, patch

import pytest

from change_audit.container import (
    get_audit_dispatcher,
    get_audit_emitter,
    get_audit_gate,
    get_audit_registry,
    get_audit_repository,
    reset_container,
)
from change_audit.domain import AuditQuery, EntityState
from change_audit.infrastructure.queue import (
    BackgroundAuditDispatcher,
    InlineAuditDispatcher,
    RQAuditDispatcher,
)
from change_audit.infrastructure.repositories import (
    InMemoryAuditRecordRepository,
    PostgresAuditRecordRepository,
)

pytestmark = pytest.mark.unit


class TestSelection:
    def test_defaults_are_memory_and_background(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)

        assert isinstance(get_audit_repository(), InMemoryAuditRecordRepository)
        assert isinstance(get_audit_dispatcher(), BackgroundAuditDispatcher)

    def test_postgres_store(self, monkeypatch):
        monkeypatch.setenv("AUDIT_STORE_BACKEND", "postgres")
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/audit")

        assert isinstance(get_audit_repository(), PostgresAuditRecordRepository)

    def test_inline_mode(self, monkeypatch):
        monkeypatch.setenv("AUDIT_DISPATCH_MODE", "inline")

        assert isinstance(get_audit_dispatcher(), InlineAuditDispatcher)

    def test_rq_mode_when_redis_is_configured(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        monkeypatch.setenv("AUDIT_STORE_BACKEND", "postgres")
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/audit")

        with patch(
            "change_audit.infrastructure.queue.rq_queue._lazy_import_rq",
            return_value=MagicMock(),
        ), patch("change_audit.container.Redis") as redis_cls:
            dispatcher = get_audit_dispatcher()

        assert isinstance(dispatcher, RQAuditDispatcher)
        redis_cls.from_url.assert_called_once()

    def test_gate_honours_audit_enabled(self, monkeypatch):
        monkeypatch.setenv("AUDIT_ENABLED", "false")

        assert get_audit_gate().is_enabled() is False


class TestSingletons:
    def test_cached_until_reset(self):
        registry = get_audit_registry()
        assert get_audit_registry() is registry

        reset_container()

        assert get_audit_registry() is not registry

    def test_emitter_shares_registry_and_gate(self):
        emitter = get_audit_emitter()

        assert emitter.registry is get_audit_registry()
        assert emitter.gate is get_audit_gate()


def test_inline_pipeline_end_to_end(monkeypatch):
    """R: Should persist a queryable record from a lifecycle hook."""
    monkeypatch.setenv("AUDIT_DISPATCH_MODE", "inline")
    emitter = get_audit_emitter()

    emitter.created(EntityState("blog.Post", 1, {"title": "Hello", "created_at": "t"}))
    emitter.deleted(EntityState("blog.Post", 1, {"title": "Hello"}))

    page = get_audit_repository().search(
        AuditQuery(entity_type="blog.Post", entity_id="1", sort_dir="asc")
    )
    assert [r.event.value for r in page.items] == ["created", "deleted"]
    assert dict(page.items[0].after) == {"title": "Hello"}
    assert all(r.created_at is not None for r in page.items)
