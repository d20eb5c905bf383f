"""
Tests for lifecycle callbacks.

Covers hook ordering, vetoes with Abort, around hooks that do not proceed,
inherited hooks, hooks registered after class definition and commit hooks.
"""

import pytest
from sqlalchemy import Boolean, Column, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from paranoia_toolkit.soft_delete import (
    Abort,
    ParanoiaMixin,
    after_commit,
    after_destroy,
    after_real_destroy,
    after_restore,
    around_destroy,
    around_real_destroy,
    before_destroy,
    before_real_destroy,
    before_restore,
)
from paranoia_toolkit.soft_delete.callbacks import register_callback

Base = declarative_base()

events = []
committed = []


class Task(Base, ParanoiaMixin):
    """Task logging every lifecycle hook."""

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    locked = Column(Boolean, default=False)

    @before_destroy
    def check_lock(self):
        events.append("before_destroy")
        if self.locked:
            raise Abort()

    @around_destroy
    def wrap_destroy(self, proceed):
        events.append("around_destroy:enter")
        result = proceed()
        events.append("around_destroy:exit")
        return result

    @after_destroy
    def destroyed(self):
        events.append("after_destroy")

    @before_restore
    def check_restore(self):
        events.append("before_restore")
        if self.locked:
            raise Abort()

    @after_restore
    def restored(self):
        events.append("after_restore")

    @before_real_destroy
    def check_purge(self):
        events.append("before_real_destroy")
        if self.locked:
            raise Abort()

    @around_real_destroy
    def wrap_purge(self, proceed):
        events.append("around_real_destroy")
        return proceed()

    @after_real_destroy
    def purged(self):
        events.append("after_real_destroy")

    @after_commit
    def on_commit(self):
        # Attributes are expired once the commit finished
        committed.append(self)


class Skipping(Base, ParanoiaMixin):
    """Model whose around hook never proceeds."""

    __tablename__ = "skipping"

    id = Column(Integer, primary_key=True)

    @around_destroy
    def skip(self, proceed):
        events.append("skipped")

    @after_destroy
    def destroyed(self):
        events.append("after_destroy")


class AuditedMixin:
    """Plain mixin contributing a hook."""

    @before_destroy
    def audit(self):
        events.append("mixin")


class Report(Base, AuditedMixin, ParanoiaMixin):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True)

    @before_destroy
    def own(self):
        events.append("own")


class Memo(Base, ParanoiaMixin):
    """Model used for hooks registered after class definition."""

    __tablename__ = "memos"

    id = Column(Integer, primary_key=True)


@pytest.fixture(autouse=True)
def clear_logs():
    events.clear()
    committed.clear()
    yield


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()


@pytest.fixture
def task(db_session):
    task = Task(name="Write report")
    db_session.add(task)
    db_session.commit()
    return task


@pytest.fixture
def locked_task(db_session):
    task = Task(name="Archived", locked=True)
    db_session.add(task)
    db_session.commit()
    return task


class TestOrdering:
    """Test the order hooks run in."""

    def test_destroy_hooks(self, task):
        task.destroy()

        assert events == [
            "before_destroy",
            "around_destroy:enter",
            "around_destroy:exit",
            "after_destroy",
        ]

    def test_restore_hooks(self, task):
        task.destroy()
        events.clear()

        task.restore()

        assert events == ["before_restore", "after_restore"]

    def test_real_destroy_hooks(self, task):
        task.really_destroy()

        assert events == [
            "before_real_destroy",
            "around_real_destroy",
            "after_real_destroy",
        ]

    def test_inherited_hooks_run_first(self, db_session):
        """Test that hooks from base classes run before the model's own."""
        report = Report()
        db_session.add(report)
        db_session.commit()

        report.destroy()

        assert events == ["mixin", "own"]


class TestVeto:
    """Test halting operations."""

    def test_before_destroy_veto(self, db_session, locked_task):
        """Test that Abort halts destroy and returns False."""
        assert locked_task.destroy() is False

        assert locked_task.is_deleted is False
        assert events == ["before_destroy"]

    def test_veto_rolls_back_the_transaction(self, db_session, task, locked_task):
        """Test that a veto undoes work already done in the transaction."""
        db_session.query(Task).all()
        task.name = "Renamed"
        db_session.flush()

        assert locked_task.destroy() is False

        assert task.name == "Write report"

    def test_before_restore_veto(self, db_session, locked_task):
        locked_task.delete()
        db_session.commit()

        result = locked_task.restore()

        assert result is locked_task
        assert locked_task.is_deleted is True
        assert "after_restore" not in events

    def test_before_real_destroy_veto(self, db_session, locked_task):
        assert locked_task.really_destroy() is False

        assert locked_task.is_really_destroyed is False
        assert Task.with_deleted(db_session).all() == [locked_task]

    def test_around_without_proceed(self, db_session):
        """Test that an around hook that does not proceed halts the operation."""
        record = Skipping()
        db_session.add(record)
        db_session.commit()

        assert record.destroy() is False

        assert record.is_deleted is False
        assert events == ["skipped"]

    def test_transient_record_veto(self):
        """Test that vetoes work without a session."""
        task = Task(name="Unsaved", locked=True)

        assert task.destroy() is False
        assert task.is_deleted is False


class TestRegistration:
    """Test registering hooks after class definition."""

    def test_register_callback(self, db_session):
        calls = []

        def remember(record):
            calls.append(record)

        Memo.register_callback("destroy", "after", remember)
        try:
            memo = Memo()
            db_session.add(memo)
            db_session.commit()

            memo.destroy()

            assert calls == [memo]
        finally:
            Memo._paranoia_registered_callbacks.remove(("destroy", "after", remember))

    def test_registered_around_hook_receives_proceed(self, db_session):
        def halt(record, proceed):
            return None

        Memo.register_callback("real_destroy", "around", halt)
        try:
            memo = Memo()
            db_session.add(memo)
            db_session.commit()

            assert memo.really_destroy() is False
            assert Memo.with_deleted(db_session).all() == [memo]
        finally:
            Memo._paranoia_registered_callbacks.remove(("real_destroy", "around", halt))

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            register_callback(Memo, "archive", "after", lambda record: None)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            register_callback(Memo, "destroy", "during", lambda record: None)

    def test_commit_hooks_run_after_only(self):
        with pytest.raises(ValueError):
            register_callback(Memo, "commit", "before", lambda record: None)


class TestCommitHooks:
    """Test hooks that run once the session commits."""

    def test_runs_after_own_transaction(self, task):
        """Test that an operation opening its own transaction fires commit hooks."""
        task.destroy()
        assert committed == [task]

    def test_waits_for_caller_commit(self, db_session, task):
        """Test that commit hooks wait for the caller's transaction."""
        db_session.query(Task).all()

        task.destroy()
        assert committed == []

        db_session.commit()
        assert committed == [task]

    def test_discarded_on_rollback(self, db_session, task):
        db_session.query(Task).all()
        task.destroy()

        db_session.rollback()
        db_session.commit()

        assert committed == []

    def test_vetoed_operation_enlists_nothing(self, db_session, locked_task):
        locked_task.destroy()
        db_session.commit()
        assert committed == []
