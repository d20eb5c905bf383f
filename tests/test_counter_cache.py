"""
Tests for counter cache maintenance.

Owners count their active dependents. Soft delete, restore and purge keep
the count exact, and cascades never adjust the association they run through.
"""

from datetime import datetime

import pytest
from sqlalchemy import Column, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from paranoia_toolkit.soft_delete import CounterCache, Dependent, ParanoiaMixin
from paranoia_toolkit.soft_delete.counter_cache import counters_suppressed

Base = declarative_base()


class Post(Base, ParanoiaMixin):
    __tablename__ = "posts"
    __paranoia_dependents__ = [Dependent("comments", foreign_key="post_id")]

    id = Column(Integer, primary_key=True)
    title = Column(String(100))
    comments_count = Column(Integer, default=0, nullable=False)
    comments = relationship("Comment", back_populates="post")


class Comment(Base, ParanoiaMixin):
    __tablename__ = "comments"
    __paranoia_counter_caches__ = [
        CounterCache("post", foreign_key="post_id", column="comments_count")
    ]

    id = Column(Integer, primary_key=True)
    body = Column(String(200))
    post_id = Column(Integer, ForeignKey("posts.id"))
    post = relationship("Post", back_populates="comments")


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
def post(db_session):
    """Create a post with three comments."""
    post = Post(title="Counting")
    db_session.add(post)
    db_session.commit()

    db_session.add_all([Comment(body=f"c{i}", post_id=post.id) for i in range(3)])
    db_session.commit()
    return post


@pytest.fixture
def comments(db_session, post):
    return db_session.query(Comment).order_by(Comment.id).all()


def stored_count(session, post_id):
    """Read the counter straight from the database."""
    return session.scalar(
        select(Post.comments_count)
        .where(Post.id == post_id)
        .execution_options(include_deleted=True)
    )


class TestInsert:
    """Test counting new records."""

    def test_insert_increments(self, post):
        assert post.comments_count == 3

    def test_insert_deleted_record_not_counted(self, db_session, post):
        """Test that records saved as deleted are not counted."""
        db_session.add(
            Comment(body="old", post_id=post.id, deleted_at=datetime(2020, 1, 1))
        )
        db_session.commit()

        assert post.comments_count == 3

    def test_insert_without_owner(self, db_session):
        """Test that records without an owner reference are skipped."""
        db_session.add(Comment(body="orphan"))
        db_session.commit()

        assert [comment.body for comment in db_session.query(Comment)] == ["orphan"]


class TestDestroyAndRestore:
    """Test counter adjustments for single records."""

    def test_destroy_decrements(self, db_session, post, comments):
        comments[0].destroy()
        assert stored_count(db_session, post.id) == 2

    def test_restore_increments(self, db_session, post, comments):
        comments[0].destroy()
        comments[0].restore()
        assert stored_count(db_session, post.id) == 3

    def test_double_destroy_decrements_once(self, db_session, post, comments):
        """Test that destroying a deleted record leaves counters alone."""
        comments[0].destroy()
        comments[0].destroy()
        assert stored_count(db_session, post.id) == 2

    def test_restore_active_record_does_not_increment(self, db_session, post, comments):
        comments[0].restore()
        assert stored_count(db_session, post.id) == 3

    def test_out_of_window_restore_does_not_increment(self, db_session, post, comments):
        comments[0].destroy_at(datetime(2020, 1, 1))

        comments[0].restore(
            recovery_window_range=(datetime(2021, 1, 1), datetime(2021, 2, 1))
        )

        assert stored_count(db_session, post.id) == 2

    def test_loaded_owner_synced_without_dirtying(self, db_session, post, comments):
        """Test that an owner held in memory sees the new count."""
        assert post.comments_count == 3

        comments[0].destroy()

        assert post.comments_count == 2
        assert post not in db_session.dirty

    def test_suppression_flag_cleared(self, db_session, post, comments):
        comments[0].destroy()
        comments[0].destroy()
        comments[0].restore()
        comments[0].restore()

        assert counters_suppressed(comments[0]) is False


class TestCascades:
    """Test counters across owner cascades."""

    def test_cascade_does_not_adjust_origin(self, db_session, post):
        """Test that destroying the owner leaves its own counter alone."""
        post.destroy()
        assert stored_count(db_session, post.id) == 3

    def test_round_trip_has_no_drift(self, db_session, post):
        """Test destroy then recursive restore of the owner."""
        post.destroy()
        post.restore(recursive=True)

        assert stored_count(db_session, post.id) == 3
        assert len(post.comments) == 3

    def test_recursive_restore_counts_separately_destroyed(
        self, db_session, post, comments
    ):
        """
        Test that a dependent destroyed before its owner is counted back in
        when the owner's recursive restore brings it back.
        """
        comments[0].destroy_at(datetime(2024, 1, 1))
        assert stored_count(db_session, post.id) == 2
        post.destroy()

        post.restore(recursive=True)

        assert len(post.comments) == 3
        assert stored_count(db_session, post.id) == 3


class TestPurge:
    """Test counters when records are removed permanently."""

    @pytest.fixture
    def observed_counts(self, db_session):
        """Record the owner's stored count after each comment is purged."""
        counts = []

        def observe(comment):
            counts.append(stored_count(db_session, comment.post_id))

        Comment.register_callback("real_destroy", "after", observe)
        yield counts
        Comment._paranoia_registered_callbacks.remove(("real_destroy", "after", observe))

    def test_purge_active_decrements(self, db_session, post, comments):
        comments[0].really_destroy()
        assert stored_count(db_session, post.id) == 2

    def test_purge_soft_deleted_does_not_decrement_again(
        self, db_session, post, comments
    ):
        comments[0].destroy()
        comments[0].really_destroy()
        assert stored_count(db_session, post.id) == 2

    def test_owner_purge_leaves_count_for_dependents(
        self, db_session, post, observed_counts
    ):
        """
        Test that dependents purged through their owner do not adjust the
        owner's counter while it is being removed.
        """
        post_id = post.id

        post.really_destroy()

        assert observed_counts == [3, 3, 3]
        assert Post.with_deleted(db_session).filter_by(id=post_id).all() == []
