"""Tests for session management in workflow_kernel/db/engine.py."""

import pytest
from sqlalchemy import func, select

from workflow_kernel.db.engine import get_engine, is_postgres, session_scope
from workflow_kernel.domain.clock import DEFAULT_TEST_START
from workflow_kernel.models.work_item import WorkItemModel


def _work_item_count() -> int:
    with get_engine().connect() as conn:
        return conn.execute(select(func.count()).select_from(WorkItemModel)).scalar_one()


def _new_item() -> WorkItemModel:
    return WorkItemModel(
        item_type="invoice",
        title="Scoped",
        created_by="ann",
        created_at=DEFAULT_TEST_START,
    )


class TestSessionScope:

    def test_commits_on_normal_exit(self, committing_session_factory):
        before = _work_item_count()
        with session_scope() as session:
            session.add(_new_item())
        assert _work_item_count() == before + 1

    def test_rolls_back_and_reraises(self, committing_session_factory):
        before = _work_item_count()
        with pytest.raises(RuntimeError, match="abort"):
            with session_scope() as session:
                session.add(_new_item())
                session.flush()
                raise RuntimeError("abort")
        assert _work_item_count() == before


def test_is_postgres_matches_dialect(db_engine):
    assert is_postgres() == (db_engine.dialect.name == "postgresql")
