"""Unit tests for the ORM models and their helpers."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from shoptalk.db.time import ensure_utc
from shoptalk.models import Conversation, Message, User, canonical_pair


def test_table_names():
    assert User.__tablename__ == "users"
    assert Conversation.__tablename__ == "conversations"
    assert Message.__tablename__ == "messages"


def test_canonical_pair_is_order_independent():
    assert canonical_pair("ben", "ana") == ("ana", "ben")
    assert canonical_pair("ana", "ben") == ("ana", "ben")


def test_conversation_participant_helpers():
    conversation = Conversation(user_low_id="ana", user_high_id="ben", unread_low=2, unread_high=5)

    assert conversation.participants == ("ana", "ben")
    assert conversation.has_participant("ben")
    assert not conversation.has_participant("sam")
    assert conversation.other_participant_id("ana") == "ben"
    assert conversation.unread_for("ana") == 2
    assert conversation.unread_for("ben") == 5
    assert conversation.unread_counts == {"ana": 2, "ben": 5}
    with pytest.raises(ValueError):
        conversation.unread_attribute("sam")


def test_is_newer_than_cached_accepts_naive_cache():
    now = datetime.now(UTC)
    conversation = Conversation(user_low_id="ana", user_high_id="ben")
    assert conversation.is_newer_than_cached(now)

    conversation.last_message_at = now.replace(tzinfo=None)
    assert conversation.is_newer_than_cached(now + timedelta(seconds=1))
    assert not conversation.is_newer_than_cached(now - timedelta(seconds=1))


def test_ensure_utc():
    naive = datetime(2026, 1, 2, 3, 4, 5)
    assert ensure_utc(naive).tzinfo is UTC
    assert ensure_utc(None) is None


def test_pair_is_unique(db_session, test_user, other_user):
    low, high = canonical_pair(test_user.id, other_user.id)
    db_session.add(Conversation(user_low_id=low, user_high_id=high))
    db_session.commit()

    db_session.add(Conversation(user_low_id=low, user_high_id=high))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_pair_must_be_canonical(db_session, test_user, other_user):
    low, high = canonical_pair(test_user.id, other_user.id)
    db_session.add(Conversation(user_low_id=high, user_high_id=low))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
