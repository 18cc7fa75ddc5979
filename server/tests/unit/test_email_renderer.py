# server/tests/unit/test_email_renderer.py
import pytest

from reminders.application.services.address_service import AddressResolver
from reminders.application.services.email_renderer import EmailRenderer, format_days, template_key
from reminders.core.utils.html import html_to_text
from reminders.domain.entities import Course, DirectoryUser, RecipientType, SiteConfig
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository

pytestmark = pytest.mark.unit

COURSE = Course(id=101, fullname="Fire Safety")
ALICE = DirectoryUser(id=1, email="alice@example.com", firstname="Alice", lastname="Martin")


@pytest.mark.parametrize(
    "level,rtype,key",
    [
        (1, RecipientType.EMPLOYEE, "level1_template"),
        (2, RecipientType.EMPLOYEE, "level2_template"),
        (3, RecipientType.EMPLOYEE, "level3_employee_template"),
        (3, RecipientType.SUPERVISOR, "level3_supervisor_template"),
        (4, RecipientType.SENIOR_MANAGER, "level4_senior_manager_template"),
    ],
)
def test_template_key(level, rtype, key):
    assert template_key(level, rtype) == key


@pytest.mark.parametrize("diff,text", [(15.0, "15"), (7.5, "7.5"), (-2.0, "2"), (10.04, "10")])
def test_format_days(diff, text):
    assert format_days(diff) == text


def test_render_employee_substitutes_placeholders(site_config, directory):
    renderer = EmailRenderer(site_config, directory)
    msg = renderer.render_employee(ALICE, COURSE, 4, 15.0)

    assert msg.subject == "CRITICAL: Mandatory Course 2 Weeks Overdue - Fire Safety"
    assert "Dear Alice Martin" in msg.body
    assert '<a href="https://lms.example.test/course/view.php?id=101">Fire Safety</a>' in msg.body
    assert "15 days" in msg.body
    assert "Test Academy" in msg.body
    assert "{" not in msg.body


def test_render_is_deterministic(site_config, directory):
    renderer = EmailRenderer(site_config, directory)
    assert renderer.render_employee(ALICE, COURSE, 3, 9.25) == renderer.render_employee(ALICE, COURSE, 3, 9.25)


def test_template_override_from_config(directory):
    config = SiteConfig(templates={"level1_template": "<p>Hi {firstname}, {coursename} ({sitename})</p>"})
    msg = EmailRenderer(config, directory).render_employee(ALICE, COURSE, 1, -2.0)
    assert msg.body == "<p>Hi Alice, Fire Safety (Learning Portal)</p>"
    assert msg.subject == "Reminder: Mandatory Course Due Soon - Fire Safety"


def test_user_values_are_html_escaped(site_config, directory):
    mallory = DirectoryUser(id=9, email="m@example.com", firstname="<b>M</b>", lastname="&Co")
    body = EmailRenderer(site_config, directory).render_employee(mallory, COURSE, 2, -0.5).body
    assert "&lt;b&gt;M&lt;/b&gt; &amp;Co" in body


def test_notification_text(site_config, directory):
    texts = EmailRenderer(site_config, directory).notification_text(2, COURSE)
    assert texts.subject == "URGENT: Course due tomorrow: Fire Safety"
    assert texts.text.startswith('URGENT: Your mandatory course "Fire Safety" is due tomorrow.')
    assert texts.small_text == "URGENT: Course due tomorrow"


def _queue(Session, now, rows):
    with Session() as s:
        repo = QueueRepository(s)
        items = [repo.add(now=now, course_id=101, **row) for row in rows]
        s.commit()
        return [i.id for i in items]


def test_supervisor_aggregate_lists_team_and_ccs_employees(Session, site_config, directory, enrol, now):
    for uid in (1, 2, 3):
        enrol(uid, 10, supervisor="boss@example.com")
    ids = _queue(
        Session,
        now,
        [
            dict(user_id=uid, level=3, recipient_type=RecipientType.SUPERVISOR, recipient_address="boss@example.com")
            for uid in (3, 1, 2)
        ],
    )
    renderer = EmailRenderer(site_config, directory)
    with Session() as s:
        repo = QueueRepository(s)
        delivery = renderer.prepare(repo.get(ids[0]), repo)

    body = delivery.message.body
    assert delivery.message.subject == "OVERDUE: Mandatory Course Not Completed - Fire Safety"
    assert "<p><strong>Fire Safety</strong></p><ul>" in body
    # tri par user_id
    assert body.index("First1 Last1") < body.index("First2 Last2") < body.index("First3 Last3")
    assert "First1 Last1 (user1@example.com)" in body
    assert delivery.cc == ["user1@example.com", "user2@example.com", "user3@example.com"]


def test_senior_manager_aggregate_groups_by_supervisor(Session, site_config, directory, enrol, now):
    enrol(1, 15, supervisor="a@example.com", senior_manager="sm@example.com")
    enrol(2, 15, supervisor="a@example.com", senior_manager="sm@example.com")
    enrol(3, 15, supervisor="b@example.com", senior_manager="sm@example.com")
    enrol(4, 15, senior_manager="sm@example.com")
    ids = _queue(
        Session,
        now,
        [
            dict(user_id=uid, level=4, recipient_type=RecipientType.SENIOR_MANAGER, recipient_address="sm@example.com")
            for uid in (1, 2, 3, 4)
        ],
    )
    renderer = EmailRenderer(site_config, directory, addresses=AddressResolver(directory))
    with Session() as s:
        repo = QueueRepository(s)
        delivery = renderer.prepare(repo.get(ids[0]), repo)

    body = delivery.message.body
    assert "<p><strong>Manager: a@example.com</strong></p>" in body
    assert "<p><strong>Manager: b@example.com</strong></p>" in body
    assert "<p><strong>Manager: Unknown</strong></p>" in body
    assert delivery.cc == ["a@example.com", "b@example.com"]

    text = html_to_text(body)
    assert "- First4 Last4 (user4@example.com)" in text


def test_employee_preview_prefers_stored_snapshot(Session, site_config, directory, enrol, now):
    enrol(1, -2)
    [item_id] = _queue(
        Session,
        now,
        [
            dict(
                user_id=1,
                level=1,
                recipient_type=RecipientType.EMPLOYEE,
                recipient_address="user1@example.com",
                rendered_subject="stored subject",
                rendered_body="<p>stored</p>",
            )
        ],
    )
    with Session() as s:
        repo = QueueRepository(s)
        msg = EmailRenderer(site_config, directory).preview(repo.get(item_id), repo)
    assert (msg.subject, msg.body) == ("stored subject", "<p>stored</p>")


def test_unknown_course_cannot_be_rendered(Session, site_config, directory, now):
    [item_id] = _queue(
        Session,
        now,
        [dict(user_id=1, level=3, recipient_type=RecipientType.SUPERVISOR, recipient_address="x@example.com")],
    )
    with Session() as s:
        repo = QueueRepository(s)
        item = repo.get(item_id)
        item.course_id = 999
        with pytest.raises(ValueError):
            EmailRenderer(site_config, directory).prepare(item, repo)


def test_management_templates_get_every_placeholder(Session, directory, enrol, now):
    enrol(1, 10, supervisor="boss@example.com")
    enrol(2, 10, supervisor="boss@example.com")
    ids = _queue(
        Session,
        now,
        [
            dict(user_id=uid, level=3, recipient_type=RecipientType.SUPERVISOR, recipient_address="boss@example.com")
            for uid in (1, 2)
        ],
    )
    config = SiteConfig(
        site_url="https://lms.example.test",
        templates={
            "level3_supervisor_template": (
                "<p>{courselink} ({daysoverdue} days) for {fullname} / {firstname} {lastname}</p>{employee_table}"
            )
        },
    )
    with Session() as s:
        repo = QueueRepository(s)
        body = EmailRenderer(config, directory).prepare(repo.get(ids[0]), repo, now=now).message.body

    assert body.startswith(
        '<p><a href="https://lms.example.test/course/view.php?id=101">Fire Safety</a>'
        " (10 days) for First1 Last1 / First1 Last1</p>"
    )
    assert "{" not in body


def test_aggregate_tables_escape_directory_values(Session, site_config, directory, enrol, now):
    enrol(1, 10, supervisor="boss@example.com")
    directory.add_user(DirectoryUser(id=1, email="user1@example.com", firstname="<i>Eve</i>", lastname="&Co"))
    [item_id] = _queue(
        Session,
        now,
        [dict(user_id=1, level=3, recipient_type=RecipientType.SUPERVISOR, recipient_address="boss@example.com")],
    )
    with Session() as s:
        repo = QueueRepository(s)
        body = EmailRenderer(site_config, directory).prepare(repo.get(item_id), repo, now=now).message.body

    assert "&lt;i&gt;Eve&lt;/i&gt; &amp;Co (user1@example.com)" in body
    assert "<i>Eve</i>" not in body


def test_manager_groups_ignore_address_case(Session, site_config, directory, enrol, now):
    enrol(1, 15, supervisor="Boss@Example.com", senior_manager="sm@example.com")
    enrol(2, 15, supervisor="boss@example.com", senior_manager="sm@example.com")
    ids = _queue(
        Session,
        now,
        [
            dict(user_id=uid, level=4, recipient_type=RecipientType.SENIOR_MANAGER, recipient_address="sm@example.com")
            for uid in (1, 2)
        ],
    )
    with Session() as s:
        repo = QueueRepository(s)
        delivery = EmailRenderer(site_config, directory).prepare(repo.get(ids[0]), repo, now=now)

    assert delivery.message.body.count("Manager: ") == 1
    assert delivery.cc == ["boss@example.com"]
