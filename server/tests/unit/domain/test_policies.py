# server/tests/unit/domain/test_policies.py
from datetime import datetime, timedelta, timezone

import pytest

from reminders.domain.entities import RecipientType
from reminders.domain.policies import (
    days_diff,
    deadline_for,
    determine_levels,
    is_valid_address,
    recipients_for_level,
    retry_backoff,
    truncate_error,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "diff,expected",
    [
        (-5.0, []),
        (-3.01, []),
        (-3.0, [1]),
        (-2.0, [1]),
        (-1.0001, [1]),
        (-1.0, [2]),
        (-0.5, [2]),
        (-0.0001, [2]),
        (0.0, []),
        (3.0, []),
        (6.99, []),
        (7.0, [3]),
        (10.0, [3]),
        (13.999, [3]),
        (14.0, [4]),
        (15.0, [4]),
        (365.0, [4]),
    ],
)
def test_level_windows_lower_bound_inclusive(diff, expected):
    assert determine_levels(diff) == expected


def test_windows_are_disjoint():
    for tenth in range(-50, 200):
        assert len(determine_levels(tenth / 10)) <= 1


def test_recipients_per_level():
    assert recipients_for_level(1) == [RecipientType.EMPLOYEE]
    assert recipients_for_level(2) == [RecipientType.EMPLOYEE]
    assert recipients_for_level(3) == [RecipientType.EMPLOYEE, RecipientType.SUPERVISOR]
    assert recipients_for_level(4) == [
        RecipientType.EMPLOYEE,
        RecipientType.SUPERVISOR,
        RecipientType.SENIOR_MANAGER,
    ]


def test_deadline_and_signed_diff():
    enrolled = datetime(2026, 1, 1, tzinfo=timezone.utc)
    deadline = deadline_for(enrolled, 14)
    assert deadline == datetime(2026, 1, 15, tzinfo=timezone.utc)
    assert days_diff(deadline - timedelta(days=2), deadline) == pytest.approx(-2.0)
    assert days_diff(deadline + timedelta(hours=12), deadline) == pytest.approx(0.5)


def test_naive_datetimes_are_treated_as_utc():
    enrolled = datetime(2026, 1, 1)
    now = datetime(2026, 1, 16, tzinfo=timezone.utc)
    assert days_diff(now, deadline_for(enrolled, 14)) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "address,ok",
    [
        ("alice@example.com", True),
        ("  bob@example.org ", True),
        ("", False),
        (None, False),
        ("not-an-email", False),
        ("user@", False),
    ],
)
def test_is_valid_address(address, ok):
    assert is_valid_address(address) is ok


def test_truncate_error():
    assert truncate_error("x" * 300) == "x" * 255
    assert truncate_error("boom", 2) == "bo"
    assert truncate_error("") == "unknown error"
    assert truncate_error(None) == "unknown error"


def test_retry_backoff_clamps_to_last_step():
    grid = (30, 120, 600)
    assert retry_backoff(1, grid) == timedelta(minutes=30)
    assert retry_backoff(2, grid) == timedelta(minutes=120)
    assert retry_backoff(3, grid) == timedelta(minutes=600)
    assert retry_backoff(9, grid) == timedelta(minutes=600)
    assert retry_backoff(0, grid) == timedelta(minutes=30)
