"""
SequenceService -- gap-free audit sequence numbers.

Responsibility:
    Allocates the ``seq`` of each AuditEvent from a named row in
    ``sequence_counters``.  The row is read FOR UPDATE, which also
    serializes the audit chain's predecessor lookup.

Architecture position:
    Kernel > Services -- infrastructure for AuditorService.

Invariants enforced:
    - The counter row is the only source of numbers; ``max(seq) + 1`` is
      never used.
    - Values roll back with the transaction that drew them.

Failure modes:
    - Two transactions creating the same counter at once: the loser's
      IntegrityError is absorbed by a savepoint and it re-reads the winner's
      row under lock.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.audit_event import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Named monotonic counters.  Flushes only; the caller commits."""

    AUDIT_EVENT = "audit_event"

    def __init__(self, session: Session):
        self._session = session

    def peek(self, sequence_name: str) -> int:
        """Last value handed out for ``sequence_name``; 0 before first use."""
        current = self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return current or 0

    def next_value(self, sequence_name: str) -> int:
        """Increment the locked counter and return the new value (first value: 1)."""
        counter = self._lock(sequence_name) or self._create(sequence_name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def _lock(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create(self, sequence_name: str) -> SequenceCounter:
        """Insert a zeroed counter, or lock the one a concurrent caller inserted."""
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=sequence_name, current_value=0)
                self._session.add(counter)
                self._session.flush()
            return counter
        except IntegrityError:
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": sequence_name})
            counter = self._lock(sequence_name)
            if counter is None:
                raise
            return counter
