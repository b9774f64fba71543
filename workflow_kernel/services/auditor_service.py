"""
AuditorService -- the hash-chained audit log.

Responsibility:
    Appends one immutable AuditEvent per lifecycle transition (task, step,
    workflow instance, work item) and per definition install, verifies the
    chain end to end, and reads an entity's history back.

Architecture position:
    Kernel > Services -- every lifecycle service writes through it.

Invariants enforced:
    - ``seq`` comes from the ``audit_event`` counter in SequenceService.
      Holding that row lock is what makes "read the tail hash, append"
      safe under concurrency.
    - The stored payload is exactly the JSON that was digested, so
      ``validate_chain`` can recompute every hash from the row alone.
    - AuditEvent rows cannot be updated or deleted (ORM listeners).

Failure modes:
    - AuditChainBrokenError from ``validate_chain()`` on the first event
      whose predecessor link or digest does not match.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.exceptions import AuditChainBrokenError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.audit_event import AuditAction, AuditEvent
from workflow_kernel.services.sequence_service import SequenceService
from workflow_kernel.utils.hashing import GENESIS, canonical_json, chain_digest, payload_digest

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: str
    payload: dict[str, Any]
    hash: str

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditTraceEntry":
        return cls(
            seq=event.seq,
            action=AuditAction(event.action),
            occurred_at=event.occurred_at,
            actor_id=event.actor_id,
            payload=event.payload or {},
            hash=event.hash,
        )


@dataclass(frozen=True)
class AuditTrace:
    """One entity's audit events, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def last_action(self) -> AuditAction | None:
        return self.actions[-1] if self.entries else None


class AuditorService:
    """Appends to and verifies the audit chain.  Flushes; never commits."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def _tail_hash(self) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def _append(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: str,
        payload: dict[str, Any],
    ) -> AuditEvent:
        # Allocate seq first: its row lock guards the tail read.
        seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._tail_hash()
        stored = json.loads(canonical_json(payload))

        event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=stored,
            payload_hash=payload_digest(stored),
            prev_hash=prev_hash,
            hash=chain_digest(entity_type, entity_id, action.value, stored, prev_hash),
        )
        self._session.add(event)
        self._session.flush()

        logger.debug(
            "audit_event_created",
            extra={
                "seq": seq,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            },
        )
        return event

    def record_transition(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: str,
        from_status: Enum | str | None = None,
        to_status: Enum | str | None = None,
        reason: str | None = None,
        **details: Any,
    ) -> AuditEvent:
        """
        Audit a status change of ``entity_type`` ("ApprovalTask",
        "StepInstance", "WorkflowInstance" or "WorkItem").

        ``from_status`` is None for creation events.  ``reason`` is recorded
        only when given; ``details`` (approver ids, versions, counts) are
        merged into the payload as-is.
        """
        payload: dict[str, Any] = {"from_status": from_status, "to_status": to_status}
        if reason is not None:
            payload["reason"] = reason
        payload.update(details)
        return self._append(entity_type, entity_id, action, actor_id, payload)

    def record_definition_installed(
        self,
        definition_id: UUID,
        name: str,
        version: int,
        step_count: int,
        actor_id: str,
    ) -> AuditEvent:
        return self._append(
            "WorkflowDefinition",
            definition_id,
            AuditAction.DEFINITION_INSTALLED,
            actor_id,
            {"name": name, "version": version, "step_count": step_count},
        )

    def validate_chain(self) -> bool:
        """
        Walk the whole log in ``seq`` order and recompute every digest.

        Returns True for an intact (or empty) chain; raises
        AuditChainBrokenError at the first mismatch.
        """
        expected_prev: str | None = None
        checked = 0
        for event in self._session.scalars(select(AuditEvent).order_by(AuditEvent.seq)):
            if event.prev_hash != expected_prev:
                raise AuditChainBrokenError(
                    event.seq, expected_prev or GENESIS, event.prev_hash or GENESIS,
                )
            recomputed = chain_digest(
                event.entity_type, event.entity_id, event.action, event.payload, event.prev_hash,
            )
            if recomputed != event.hash:
                raise AuditChainBrokenError(event.seq, recomputed, event.hash)
            expected_prev = event.hash
            checked += 1

        logger.info("audit_chain_validated", extra={"event_count": checked})
        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        events = self._session.scalars(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        )
        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(AuditTraceEntry.from_event(event) for event in events),
        )
