# server/tests/unit/test_repositories.py
from datetime import timedelta

import pytest
import sqlalchemy as sa

from reminders.core.utils.datetime import utcnow
from reminders.domain.entities import DrainScope, QueueStatus, RecipientType
from reminders.infrastructure.persistence.database.models.queue_item import QueueItem
from reminders.infrastructure.persistence.repositories.deadline_config_repository import (
    DeadlineConfigRepository,
)
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository
from reminders.infrastructure.persistence.repositories.sent_log_repository import SentLogRepository

pytestmark = pytest.mark.unit


def _item(repo, now, **kw):
    data = dict(
        user_id=1,
        course_id=101,
        level=3,
        recipient_type=RecipientType.SUPERVISOR,
        recipient_address="boss@example.com",
        now=now,
    )
    data.update(kw)
    return repo.add(**data)


def test_claim_is_compare_and_swap(Session):
    now = utcnow()
    with Session() as s:
        item_id = _item(QueueRepository(s), now).id
        s.commit()

    with Session() as s:
        repo = QueueRepository(s)
        assert repo.claim(item_id, now) is True
        assert repo.claim(item_id, now) is False
        s.commit()
        assert repo.get_status(item_id) == QueueStatus.PROCESSING


def test_mark_sent_requires_processing(Session):
    now = utcnow()
    with Session() as s:
        repo = QueueRepository(s)
        item_id = _item(repo, now).id
        assert repo.mark_sent(item_id, now) is False
        repo.claim(item_id, now)
        assert repo.mark_sent(item_id, now) is True
        s.commit()


def test_mark_siblings_sent_matches_full_key(Session):
    now = utcnow()
    with Session() as s:
        repo = QueueRepository(s)
        me = _item(repo, now, user_id=1)
        sibling = _item(repo, now, user_id=2)
        other_level = _item(repo, now, user_id=3, level=4)
        other_course = _item(repo, now, user_id=4, course_id=202)
        other_address = _item(repo, now, user_id=5, recipient_address="other@example.com")
        s.commit()

        assert repo.mark_siblings_sent(me, now) == 1
        # rejouer ne change rien
        assert repo.mark_siblings_sent(me, now) == 0
        s.commit()

        assert repo.get_status(sibling.id) == QueueStatus.SENT
        assert repo.get_status(me.id) == QueueStatus.PENDING
        for row in (other_level, other_course, other_address):
            assert repo.get_status(row.id) == QueueStatus.PENDING


def test_fetch_pending_is_oldest_first_and_scoped(Session):
    now = utcnow()
    with Session() as s:
        repo = QueueRepository(s)
        late = _item(repo, now, user_id=1)
        early = _item(repo, now - timedelta(minutes=5), user_id=2)
        employee = _item(
            repo,
            now - timedelta(minutes=10),
            user_id=3,
            recipient_type=RecipientType.EMPLOYEE,
            recipient_address="u3@example.com",
        )
        s.commit()

        assert [i.id for i in repo.fetch_pending(limit=10)] == [employee.id, early.id, late.id]
        scope = DrainScope(recipient_type=RecipientType.SUPERVISOR)
        assert [i.id for i in repo.fetch_pending(limit=10, scope=scope)] == [early.id, late.id]
        assert repo.count_pending(DrainScope(item_ids=(late.id,))) == 1


def test_sent_log_claim_is_unique(Session):
    now = utcnow()
    key = dict(user_id=1, course_id=101, level=3, enrolled_at=None, deadline_at=None, now=now)

    with Session() as s:
        assert SentLogRepository(s).claim(**key) is True
        s.commit()

    with Session() as s:
        assert SentLogRepository(s).claim(**key) is False

    with Session() as s:
        assert SentLogRepository(s).exists(1, 101, 3)


def test_sent_log_touch_upserts(Session):
    now = utcnow()
    with Session() as s:
        repo = SentLogRepository(s)
        first = repo.touch(user_id=1, course_id=101, level=1, enrolled_at=None, deadline_at=None, now=now)
        later = now + timedelta(hours=1)
        second = repo.touch(user_id=1, course_id=101, level=1, enrolled_at=None, deadline_at=None, now=later)
        s.commit()
        assert first.id == second.id
        assert repo.get(1, 101, 1).sent_at == later


def test_deadline_repository_upsert(Session):
    now = utcnow()
    with Session() as s:
        repo = DeadlineConfigRepository(s)
        repo.upsert(101, 10, now)
        repo.upsert(101, 20, now)
        s.commit()
        assert repo.get_days(101) == 20
        assert len(repo.list_all()) == 1
        assert repo.delete(101) is True
        assert repo.get_days(101) is None


def test_rendered_subject_has_no_length_cap(Session):
    now = utcnow()
    subject = "CRITICAL: Mandatory Course 2 Weeks Overdue - " + "Workplace Health and Safety " * 12
    assert len(subject) > 255
    assert isinstance(QueueItem.__table__.c.rendered_subject.type, sa.Text)

    with Session() as s:
        item_id = _item(
            QueueRepository(s),
            now,
            recipient_type=RecipientType.EMPLOYEE,
            recipient_address="user1@example.com",
            rendered_subject=subject,
            rendered_body="<p>b</p>",
        ).id
        s.commit()

    with Session() as s:
        assert QueueRepository(s).get(item_id).rendered_subject == subject
