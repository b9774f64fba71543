"""
Module: workflow_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: definition lookups and
    progress summaries, without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/ value types.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never
      ORM model instances.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - Lookups return None (or an empty collection) on absence of data;
      raising is left to the calling service.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
