"""
Name: Audit Registry Tests

Responsibilities:
  - Validate per-type configuration, defaults and overrides
  - Validate tolerant parsing of raw (dict/JSON) configuration
  - Validate self-exclusion of the audit record type
"""

import pytest

from change_audit.application import (
    AUDIT_RECORD_ENTITY_TYPE,
    DEFAULT_IGNORED_ATTRIBUTES,
    AuditRegistry,
    entity_type_name,
)
from change_audit.domain import AuditConfiguration, AuditEventType, AuditRecord

pytestmark = pytest.mark.unit


class Invoice:
    pass


class TestDefaults:
    def test_unknown_type_resolves_to_defaults(self, registry):
        config = registry.resolve("shop.Unknown")

        assert config.ignored_attributes == DEFAULT_IGNORED_ATTRIBUTES
        assert config.auditing_enabled is True
        assert config.critical_events == frozenset()
        assert config.include_snapshot is False

    def test_custom_default_ignore_list(self):
        registry = AuditRegistry(default_ignored_attributes={"touched_at"})

        assert registry.default.ignored_attributes == frozenset({"touched_at"})

    def test_audit_record_type_is_registered_non_auditable(self, registry):
        """R: Should exclude the store's own record type from auditing."""
        assert AUDIT_RECORD_ENTITY_TYPE == entity_type_name(AuditRecord)
        assert registry.is_enabled(AuditRecord) is False


class TestRegister:
    def test_register_with_overrides(self, registry):
        config = registry.register(
            Invoice,
            ignored_attributes=["cache"],
            critical_events=["deleted"],
            include_snapshot=True,
        )

        assert registry.resolve(Invoice) is config
        assert config.ignored_attributes == frozenset({"cache"})
        assert config.critical_events == frozenset({AuditEventType.DELETED})
        assert config.include_snapshot is True

    def test_register_drops_unknown_critical_event(self, registry):
        """R: Should keep known events and ignore the rest, without raising."""
        config = registry.register(
            "shop.Order", critical_events=[AuditEventType.DELETED, "exploded"]
        )

        assert config.critical_events == frozenset({AuditEventType.DELETED})

    def test_class_and_dotted_name_are_the_same_key(self, registry):
        registry.register(Invoice, include_snapshot=True)

        assert registry.resolve(f"{__name__}.Invoice").include_snapshot is True

    def test_register_explicit_configuration(self, registry):
        config = AuditConfiguration(auditing_enabled=False)
        registry.register("shop.Secret", config)

        assert registry.is_enabled("shop.Secret") is False

    def test_set_enabled_only_touches_one_type(self, registry):
        registry.register("shop.A", include_snapshot=True)
        registry.set_enabled("shop.A", False)

        assert registry.is_enabled("shop.A") is False
        assert registry.resolve("shop.A").include_snapshot is True
        assert registry.is_enabled("shop.B") is True


class TestRegisterFromMapping:
    def test_well_formed_mapping(self, registry):
        config = registry.register_from_mapping(
            "shop.Order",
            {
                "ignored_attributes": "updated_at, internal_notes",
                "critical_events": ["deleted", "force_deleted"],
                "include_snapshot": True,
                "description_template": "{short_type} {event}",
            },
        )

        assert config.ignored_attributes == frozenset({"updated_at", "internal_notes"})
        assert config.critical_events == frozenset(
            {AuditEventType.DELETED, AuditEventType.FORCE_DELETED}
        )
        assert config.include_snapshot is True
        assert config.description_template == "{short_type} {event}"

    def test_unknown_critical_event_is_dropped(self, registry):
        config = registry.register_from_mapping(
            "shop.Order", {"critical_events": ["deleted", "exploded"]}
        )

        assert config.critical_events == frozenset({AuditEventType.DELETED})

    def test_malformed_ignore_list_falls_back_to_empty(self, registry):
        config = registry.register_from_mapping(
            "shop.Order", {"ignored_attributes": 42}
        )

        assert config.ignored_attributes == frozenset()

    def test_missing_ignore_list_uses_default(self, registry):
        config = registry.register_from_mapping("shop.Order", {})

        assert config.ignored_attributes == DEFAULT_IGNORED_ATTRIBUTES

    def test_non_mapping_config_uses_defaults(self, registry):
        config = registry.register_from_mapping("shop.Order", None)

        assert config.auditing_enabled is True
        assert config.description_template is None
