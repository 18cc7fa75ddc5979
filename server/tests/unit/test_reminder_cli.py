# server/tests/unit/test_reminder_cli.py
import importlib.util
from contextlib import contextmanager
from pathlib import Path

import pytest

from reminders.application import wiring
from reminders.core.utils.datetime import utcnow

pytestmark = pytest.mark.unit

CLI_PATH = Path(__file__).resolve().parents[2] / "scripts" / "reminder_cli.py"


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def cli(monkeypatch, directory, mailer):
    spec = importlib.util.spec_from_file_location("reminder_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    @contextmanager
    def _open_directory():
        yield directory

    monkeypatch.setattr(module, "open_directory", _open_directory)
    monkeypatch.setattr(wiring, "build_mailer", lambda: mailer)
    return module


def test_test_action_writes_nothing(cli, enrol, capsys, Session):
    enrol(1, 10, supervisor="boss@example.com")

    assert cli.main(["test"]) == 0

    out = capsys.readouterr().out
    assert "Evaluation (dry run)" in out
    assert "- levels queued: 1" in out
    assert "- queue items: 0" in out


def test_run_then_process_delivers_everything(cli, enrol, mailer, capsys):
    enrol(1, 10, supervisor="boss@example.com")

    assert cli.main(["run"]) == 0
    assert cli.main(["queue"]) == 0
    listing = capsys.readouterr().out
    assert "boss@example.com" in listing

    assert cli.main(["process", "--batch-size", "1"]) == 0
    assert "- sent: 2" in capsys.readouterr().out
    assert len(mailer.sent) == 2


def test_process_returns_1_on_failures(cli, enrol, mailer, capsys):
    enrol(1, 10)
    cli.main(["run"])
    mailer.refuse.add("user1@example.com")

    assert cli.main(["process"]) == 1
    assert "- failed: 1" in capsys.readouterr().out


def test_stats_and_mandatory(cli, enrol, capsys):
    enrol(1, 3)
    assert cli.main(["mandatory"]) == 0
    assert cli.main(["stats"]) == 0
    out = capsys.readouterr().out
    assert "Fire Safety" in out
    assert "- incomplete_users: 1" in out
