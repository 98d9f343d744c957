"""
Name: Audit Service Interfaces (Ports)

Responsibilities:
  - Define the dispatcher contract that decouples record assembly from
    persistence

Collaborators:
  - change_audit/audit.py: hands every assembled record to a dispatcher
  - infrastructure.queue: RQ / background thread / inline implementations

Constraints:
  - `submit` never blocks on persistence I/O (except the inline mode) and
    never raises.
"""

from typing import Protocol

from .audit import AuditRecord


class AuditDispatcher(Protocol):
    """R: Interface for handing audit records to persistence."""

    mode: str

    def submit(self, record: AuditRecord) -> bool:
        """
        R: Hand a record off for persistence.

        Returns True when the hand-off succeeded, False when the record was
        dropped (failure already logged).
        """
        ...
