"""
BaseService -- shared plumbing for the kernel lifecycle services.

Lifecycle services work inside the caller's transaction: they flush and
audit, and leave commit and rollback to the WorkflowOrchestrator,
``session_scope`` or the test harness.  That is what lets a whole approval
cascade land or vanish as one unit of work.
"""

from abc import ABC
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.exceptions import NotFoundError
from workflow_kernel.services.auditor_service import AuditorService

ModelT = TypeVar("ModelT", bound=Base)


class BaseService(ABC):
    """Holds the session, auditor and clock a lifecycle service writes with."""

    def __init__(
        self,
        session: Session,
        auditor: AuditorService,
        clock: Clock | None = None,
    ):
        self._session = session
        self._auditor = auditor
        self._clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    def _fetch(
        self,
        model: type[ModelT],
        row_id: UUID,
        not_found: type[NotFoundError],
        lock: bool = True,
    ) -> ModelT:
        """
        Load one row by id, raising ``not_found(str(row_id))`` if absent.

        With ``lock`` the row is read FOR UPDATE and refreshed from the
        database, so a status check after a blocked lock sees the winner's
        write rather than the identity map's stale copy.
        """
        stmt = select(model).where(model.id == row_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise not_found(str(row_id))
        return row
