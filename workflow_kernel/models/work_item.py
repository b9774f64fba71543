"""
Module: workflow_kernel.models.work_item
Responsibility: ORM persistence for work items and their submitted versions.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - UNIQUE(work_item_id, version): one snapshot per version counter value.
    - Work item versions are immutable once written (ORM listeners).

Failure modes:
    - IntegrityError when the same version is submitted twice.
    - ImmutabilityViolationError on version UPDATE or DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, TZDateTime, UUIDString
from workflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from workflow_kernel.domain.work_item import WorkItem, WorkItemVersion


class WorkItemModel(Base):
    """The document or request being routed for approval."""

    __tablename__ = "work_items"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'in_review', 'rework', "
            "'approved', 'rejected', 'cancelled', 'archived')",
            name="ck_work_items_valid_status",
        ),
        CheckConstraint("current_version >= 1", name="ck_work_items_version_positive"),
    )

    item_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    content_ref: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_by: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<WorkItem {self.id} {self.item_type} status={self.status} v{self.current_version}>"

    def to_dto(self) -> WorkItem:
        from workflow_kernel.domain.work_item import (
            WorkItem as WorkItemDTO,
            WorkItemStatus,
        )

        return WorkItemDTO(
            work_item_id=self.id,
            item_type=self.item_type,
            status=WorkItemStatus(self.status),
            current_version=self.current_version,
            created_by=self.created_by,
            created_at=self.created_at,
            title=self.title,
            content_ref=self.content_ref,
        )


class WorkItemVersionModel(Base):
    """Immutable content snapshot taken on submission."""

    __tablename__ = "work_item_versions"

    __table_args__ = (
        UniqueConstraint("work_item_id", "version", name="uq_work_item_versions"),
    )

    work_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_items.id"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content_ref: Mapped[str] = mapped_column(String(1000), nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(200), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)

    def to_dto(self) -> WorkItemVersion:
        from workflow_kernel.domain.work_item import WorkItemVersion as VersionDTO

        return VersionDTO(
            version_id=self.id,
            work_item_id=self.work_item_id,
            version=self.version,
            content_ref=self.content_ref,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
        )


@event.listens_for(WorkItemVersionModel, "before_update")
def prevent_version_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="WorkItemVersion",
        entity_id=str(target.id),
        reason="Submitted versions are immutable -- cannot modify",
    )


@event.listens_for(WorkItemVersionModel, "before_delete")
def prevent_version_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="WorkItemVersion",
        entity_id=str(target.id),
        reason="Submitted versions are immutable -- cannot delete",
    )
