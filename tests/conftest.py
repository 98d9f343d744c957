"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Provide reusable test fixtures (registry, gate, emitter, stores)
  - Provide a capturing dispatcher so emitter tests stay in-process
  - Keep ambient state (ContextVars, settings, container) isolated per test

Collaborators:
  - pytest: Test framework
  - change_audit.application / change_audit.audit
  - change_audit.infrastructure.repositories.in_memory

Notes:
  - Settings ignore any local .env file during tests
"""

import os
import sys
from pathlib import Path
from typing import List

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from change_audit.crosscutting import config as audit_config  # noqa: E402

audit_config.Settings.model_config["env_file"] = None
os.environ.setdefault("APP_ENV", "test")

from change_audit.application import AuditGate, AuditRegistry  # noqa: E402
from change_audit.audit import AuditEmitter  # noqa: E402
from change_audit.container import reset_container  # noqa: E402
from change_audit.context import clear_context  # noqa: E402
from change_audit.domain import AuditRecord  # noqa: E402
from change_audit.infrastructure.repositories import (  # noqa: E402
    InMemoryAuditRecordRepository,
)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Fakes
# ============================================================================


class CapturingDispatcher:
    """R: Dispatcher fake that keeps every submitted record in memory."""

    mode = "capturing"

    def __init__(self, accept: bool = True) -> None:
        self.records: List[AuditRecord] = []
        self.accept = accept

    def submit(self, record: AuditRecord) -> bool:
        self.records.append(record)
        return self.accept


class ExplodingDispatcher:
    """R: Dispatcher fake whose hand-off always raises."""

    mode = "exploding"

    def submit(self, record: AuditRecord) -> bool:
        raise RuntimeError("queue unavailable")


# ============================================================================
# Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def _isolate_ambient_state(monkeypatch):
    """R: Each test starts with empty context, fresh settings and container."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    clear_context()
    audit_config.reset_settings()
    reset_container()
    yield
    clear_context()
    reset_container()
    audit_config.reset_settings()


# ============================================================================
# Pipeline fixtures
# ============================================================================


@pytest.fixture
def registry() -> AuditRegistry:
    return AuditRegistry()


@pytest.fixture
def gate(registry: AuditRegistry) -> AuditGate:
    return AuditGate(registry)


@pytest.fixture
def dispatcher() -> CapturingDispatcher:
    return CapturingDispatcher()


@pytest.fixture
def emitter(
    dispatcher: CapturingDispatcher, registry: AuditRegistry, gate: AuditGate
) -> AuditEmitter:
    return AuditEmitter(dispatcher=dispatcher, registry=registry, gate=gate)


@pytest.fixture
def memory_repository() -> InMemoryAuditRecordRepository:
    return InMemoryAuditRecordRepository()
