"""
Name: Audit Emitter Tests

Responsibilities:
  - Validate record shape per lifecycle hook (created/updated/deleted/...)
  - Validate ignore-list filtering and no-op update suppression
  - Validate gate interaction (global, scoped, per-type)
  - Validate the best-effort contract: failures never reach the caller
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from change_audit.application import AUDIT_RECORD_ENTITY_TYPE
from change_audit.audit import AuditEmitter, describe, short_type_name
from change_audit.context import audit_context, captured_originals_var
from change_audit.crosscutting.exceptions import AuditAssemblyError
from change_audit.crosscutting.metrics import get_sample_value
from change_audit.domain import AuditConfiguration, AuditEventType, EntityState

pytestmark = pytest.mark.unit

POST = "blog.Post"
COMMENT = "blog.Comment"


class Post:
    pass


def _state(attributes, entity_id=1, entity_type=POST, original=None):
    return EntityState(
        entity_type=entity_type,
        entity_id=entity_id,
        attributes=attributes,
        original=original,
    )


class _RejectingDispatcher:
    mode = "rejecting"

    def submit(self, record):
        return False


class _ExplodingDispatcher:
    mode = "exploding"

    def submit(self, record):
        raise RuntimeError("queue unavailable")


class TestCreated:
    """R: created() emits before=None and the filtered attributes."""

    def test_create_emits_single_record(self, emitter, dispatcher):
        """R: Should produce one created record without timestamps."""
        emitter.created(
            _state(
                {
                    "title": "Hello",
                    "body": "World",
                    "created_at": "2024-01-01T00:00:00",
                    "updated_at": "2024-01-01T00:00:00",
                }
            )
        )

        assert len(dispatcher.records) == 1
        record = dispatcher.records[0]
        assert record.event == AuditEventType.CREATED
        assert record.before is None
        assert dict(record.after) == {"title": "Hello", "body": "World"}
        assert record.entity_type == POST
        assert record.entity_id == "1"
        assert record.is_critical is False
        assert record.description == "Post created (1)"

    def test_create_returns_the_assembled_record(self, emitter, dispatcher):
        """R: Should return the same record handed to the dispatcher."""
        record = emitter.created(_state({"title": "Hello"}))

        assert record is dispatcher.records[0]

    def test_entity_class_is_normalized_to_dotted_name(self, emitter, dispatcher):
        """R: Should accept the model class as entity type."""
        emitter.created(EntityState(Post, 7, {"title": "x"}))

        assert dispatcher.records[0].entity_type == f"{__name__}.Post"

    def test_values_are_encoded_for_json(self, emitter, dispatcher):
        """R: Should encode non-JSON values at assembly time."""
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        emitter.created(_state({"price": Decimal("9.90"), "published": when}))

        after = dict(dispatcher.records[0].after)
        assert after == {"price": "9.90", "published": "2024-05-01T12:00:00+00:00"}

    def test_create_with_only_ignored_attributes_stores_null_after(
        self, emitter, dispatcher
    ):
        """R: Should store after=None when every attribute is ignored."""
        emitter.created(_state({"created_at": "t"}))

        assert dispatcher.records[0].after is None


class TestUpdated:
    """R: updating()/updated() capture the original and emit the diff."""

    def test_update_diff_excludes_ignored_attributes(self, emitter, dispatcher):
        """R: Should emit before/after without updated_at."""
        emitter.updating(_state({"body": "World", "updated_at": "T1"}))
        emitter.updated(_state({"body": "Universe", "updated_at": "T2"}))

        assert len(dispatcher.records) == 1
        record = dispatcher.records[0]
        assert record.event == AuditEventType.UPDATED
        assert dict(record.before) == {"body": "World"}
        assert dict(record.after) == {"body": "Universe"}

    def test_update_touching_only_ignored_fields_emits_nothing(
        self, emitter, dispatcher
    ):
        """R: Should suppress a no-op update."""
        before = get_sample_value(
            "change_audit_records_suppressed_total", {"reason": "noop_update"}
        ) or 0.0

        emitter.updating(_state({"body": "World", "updated_at": "T1"}))
        result = emitter.updated(_state({"body": "World", "updated_at": "T2"}))

        assert result is None
        assert dispatcher.records == []
        after = get_sample_value(
            "change_audit_records_suppressed_total", {"reason": "noop_update"}
        )
        assert after == before + 1

    def test_explicit_changes_are_used_as_after(self, emitter, dispatcher):
        """R: Should trust the host-provided change set."""
        emitter.updated(
            _state({"title": "A", "body": "B"}, original={"title": "A", "body": "x"}),
            changes={"body": "B"},
        )

        record = dispatcher.records[0]
        assert dict(record.after) == {"body": "B"}
        assert dict(record.before) == {"title": "A", "body": "x"}

    def test_state_original_is_used_without_capture(self, emitter, dispatcher):
        """R: Should fall back to state.original when nothing was captured."""
        emitter.updated(_state({"body": "new"}, original={"body": "old"}))

        record = dispatcher.records[0]
        assert dict(record.before) == {"body": "old"}
        assert dict(record.after) == {"body": "new"}

    def test_update_without_any_original_is_suppressed(self, emitter, dispatcher):
        """R: Should not emit an update whose before state is unknown."""
        before = get_sample_value(
            "change_audit_records_suppressed_total", {"reason": "no_original"}
        ) or 0.0

        result = emitter.updated(_state({"body": "new"}))

        assert result is None
        assert dispatcher.records == []
        after = get_sample_value(
            "change_audit_records_suppressed_total", {"reason": "no_original"}
        )
        assert after == before + 1

    def test_explicit_captured_wins_over_context(self, emitter, dispatcher):
        """R: Should prefer the captured mapping passed by the caller."""
        emitter.updating(_state({"body": "from-context"}))
        emitter.updated(_state({"body": "new"}), captured={"body": "explicit"})

        assert dict(dispatcher.records[0].before) == {"body": "explicit"}

    def test_captured_original_is_consumed(self, emitter):
        """R: Should drop the captured snapshot after updated()."""
        emitter.updating(_state({"body": "World"}))
        assert captured_originals_var.get()

        emitter.updated(_state({"body": "Universe"}))

        assert captured_originals_var.get() == {}

    def test_capture_happens_even_while_suppressed(self, emitter, gate, dispatcher):
        """R: Should capture originals regardless of the gate."""
        with gate.without_auditing():
            emitter.updating(_state({"body": "World"}))
        emitter.updated(_state({"body": "Universe"}))

        assert dict(dispatcher.records[0].before) == {"body": "World"}

    def test_captures_are_keyed_per_entity(self, emitter, dispatcher):
        """R: Should not mix originals of different entities."""
        emitter.updating(_state({"body": "one"}, entity_id=1))
        emitter.updating(_state({"body": "two"}, entity_id=2))

        emitter.updated(_state({"body": "TWO"}, entity_id=2))
        emitter.updated(_state({"body": "ONE"}, entity_id=1))

        by_id = {r.entity_id: r for r in dispatcher.records}
        assert dict(by_id["1"].before) == {"body": "one"}
        assert dict(by_id["2"].before) == {"body": "two"}


class TestDeletedAndRestored:
    def test_delete_emits_before_only(self, emitter, dispatcher):
        """R: Should emit before=attributes, after=None."""
        emitter.deleted(_state({"title": "Hello"}))

        record = dispatcher.records[0]
        assert record.event == AuditEventType.DELETED
        assert dict(record.before) == {"title": "Hello"}
        assert record.after is None

    def test_restore_emits_after_only(self, emitter, dispatcher):
        """R: Should emit before=None, after=attributes."""
        emitter.restored(_state({"title": "Hello", "deleted_at": None}))

        record = dispatcher.records[0]
        assert record.event == AuditEventType.RESTORED
        assert record.before is None
        assert dict(record.after) == {"title": "Hello"}

    def test_force_delete_emits_before_only(self, emitter, dispatcher):
        """R: Should emit a force_deleted record."""
        emitter.force_deleted(_state({"title": "Hello"}))

        record = dispatcher.records[0]
        assert record.event == AuditEventType.FORCE_DELETED
        assert dict(record.before) == {"title": "Hello"}
        assert record.after is None


class TestConfiguration:
    def test_critical_events_flag_records(self, emitter, registry, dispatcher):
        """R: Should flag deletes as critical and creates as not critical."""
        registry.register(POST, critical_events={AuditEventType.DELETED})

        emitter.created(_state({"title": "Hello"}))
        emitter.deleted(_state({"title": "Hello"}))

        created, deleted = dispatcher.records
        assert created.is_critical is False
        assert deleted.is_critical is True

    def test_per_type_ignore_list(self, emitter, registry, dispatcher):
        """R: Should apply the type's own ignore-list."""
        registry.register(POST, ignored_attributes={"views"})

        emitter.created(_state({"title": "Hello", "views": 10, "created_at": "t"}))

        assert dict(dispatcher.records[0].after) == {
            "title": "Hello",
            "created_at": "t",
        }

    def test_snapshot_included_when_configured(self, emitter, registry, dispatcher):
        """R: Should store the full unfiltered state as snapshot."""
        registry.register(POST, include_snapshot=True)

        emitter.created(_state({"title": "Hello", "updated_at": "t"}))

        assert dict(dispatcher.records[0].snapshot) == {
            "title": "Hello",
            "updated_at": "t",
        }

    def test_snapshot_absent_by_default(self, emitter, dispatcher):
        emitter.created(_state({"title": "Hello"}))

        assert dispatcher.records[0].snapshot is None

    def test_description_template(self, emitter, registry, dispatcher):
        """R: Should render the configured description template."""
        registry.register(
            POST, description_template="{short_type}#{entity_id} was {event}"
        )

        emitter.deleted(_state({"title": "Hello"}, entity_id=9))

        assert dispatcher.records[0].description == "Post#9 was deleted"


class TestGate:
    def test_global_disable_suppresses_everything(self, emitter, gate, dispatcher):
        """R: Should not emit while globally disabled, and resume afterwards."""
        gate.disable()
        emitter.created(_state({"title": "a"}))
        emitter.deleted(_state({"title": "a"}))
        gate.enable()
        emitter.created(_state({"title": "b"}))

        assert [dict(r.after) for r in dispatcher.records] == [{"title": "b"}]

    def test_run_without_auditing_scope(self, emitter, gate, dispatcher):
        """R: Should suppress inside the scope only."""
        result = gate.run_without_auditing(
            lambda: emitter.created(_state({"title": "hidden"})) or "done"
        )
        emitter.created(_state({"title": "visible"}))

        assert result == "done"
        assert [dict(r.after) for r in dispatcher.records] == [{"title": "visible"}]

    def test_disabled_type_does_not_affect_other_types(
        self, emitter, registry, dispatcher
    ):
        """R: Should keep emitting for types that remain enabled."""
        registry.set_enabled(COMMENT, False)

        emitter.created(_state({"body": "c"}, entity_type=COMMENT))
        emitter.created(_state({"title": "p"}, entity_type=POST))

        assert [r.entity_type for r in dispatcher.records] == [POST]

    def test_audit_record_type_is_never_audited(self, emitter, dispatcher):
        """R: Should exclude the store's own record type."""
        emitter.created(
            _state({"event": "created"}, entity_type=AUDIT_RECORD_ENTITY_TYPE)
        )

        assert dispatcher.records == []


class TestRequestContext:
    def test_context_is_copied_into_the_record(self, emitter, dispatcher):
        """R: Should enrich the record with actor and request metadata."""
        with audit_context(
            actor_id=42,
            ip_address="10.0.0.1",
            user_agent="pytest",
            url="https://shop.test/posts/1",
            http_method="PUT",
            route_name="posts.update",
            auth_guard="web",
        ):
            emitter.created(_state({"title": "Hello"}))

        record = dispatcher.records[0]
        assert record.actor_id == "42"
        assert record.ip_address == "10.0.0.1"
        assert record.user_agent == "pytest"
        assert record.url == "https://shop.test/posts/1"
        assert record.http_method == "PUT"
        assert record.route_name == "posts.update"
        assert record.auth_guard == "web"

    def test_outside_request_context_fields_are_none(self, emitter, dispatcher):
        """R: Should leave context fields empty for console/worker operations."""
        emitter.created(_state({"title": "Hello"}))

        record = dispatcher.records[0]
        assert record.actor_id is None
        assert record.ip_address is None
        assert record.url is None


class TestBestEffort:
    """R: Audit failures are logged and swallowed."""

    def test_dispatcher_failure_is_swallowed(self, registry, gate):
        """R: Should return None instead of raising."""
        emitter = AuditEmitter(
            dispatcher=_ExplodingDispatcher(), registry=registry, gate=gate
        )
        before = get_sample_value(
            "change_audit_assembly_failed_total", {"event": "created"}
        ) or 0.0

        assert emitter.created(_state({"title": "Hello"})) is None

        after = get_sample_value(
            "change_audit_assembly_failed_total", {"event": "created"}
        )
        assert after == before + 1

    def test_broken_description_template_is_swallowed(
        self, emitter, registry, dispatcher
    ):
        """R: Should not propagate a template error."""
        registry.register(POST, description_template="{missing}")

        assert emitter.created(_state({"title": "Hello"})) is None
        assert dispatcher.records == []

    def test_resolver_failure_is_swallowed(self, emitter, dispatcher):
        """R: Should not propagate a context resolution error."""
        with patch(
            "change_audit.application.context_resolver.get_audit_context_values",
            side_effect=RuntimeError("boom"),
        ):
            assert emitter.deleted(_state({"title": "Hello"})) is None

        assert dispatcher.records == []

    def test_dropped_record_returns_none(self, registry, gate):
        """R: Should return None when the dispatcher dropped the record."""
        emitter = AuditEmitter(
            dispatcher=_RejectingDispatcher(), registry=registry, gate=gate
        )
        emitted_before = get_sample_value(
            "change_audit_records_emitted_total", {"event": "created"}
        ) or 0.0

        record = emitter.created(_state({"title": "Hello"}))

        assert record is None
        emitted_after = get_sample_value(
            "change_audit_records_emitted_total", {"event": "created"}
        ) or 0.0
        assert emitted_after == emitted_before

    def test_accepted_record_is_returned(self, emitter, dispatcher):
        """R: Should return the record the dispatcher accepted."""
        record = emitter.created(_state({"title": "Hello"}))

        assert record is dispatcher.records[0]

    def test_host_operation_result_is_unaffected(self, registry, gate):
        """R: Should let a wrapped host operation return normally."""
        emitter = AuditEmitter(
            dispatcher=_ExplodingDispatcher(), registry=registry, gate=gate
        )

        def save_post():
            emitter.created(_state({"title": "Hello"}))
            return "saved"

        assert save_post() == "saved"


class TestDescribe:
    def test_short_type_name(self):
        assert short_type_name("shop.models.Product") == "Product"
        assert short_type_name("App\\Models\\Product") == "Product"
        assert short_type_name("Product") == "Product"

    def test_describe_without_id(self):
        config = AuditConfiguration()
        assert describe(config, AuditEventType.CREATED, "shop.Product", None) == (
            "Product created"
        )

    def test_describe_invalid_template_raises_assembly_error(self):
        config = AuditConfiguration(description_template="{nope}")
        with pytest.raises(AuditAssemblyError):
            describe(config, AuditEventType.CREATED, "shop.Product", "1")
