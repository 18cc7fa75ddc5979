#!/usr/bin/env python3
from __future__ import annotations

"""
reminder_cli.py

Outil d'exploitation des relances de cours obligatoires.

Actions
-------
- stats      : compteurs de la file + cours obligatoires
- mandatory  : liste des cours obligatoires (échéance, inscrits non complete)
- queue      : prochains items pending (plus anciens d'abord)
- test       : évaluation à blanc (aucune écriture)
- run        : évaluation réelle (journal + mise en file)
- process    : vide la file en synchrone, lot par lot
- retry      : failed -> pending (sous MAX_ATTEMPTS)

Configuration : mêmes variables d'environnement que le serveur (DATABASE_URL,
DIRECTORY_API_URL, SMTP_*, ...).

Ex:  python server/scripts/reminder_cli.py stats
     python server/scripts/reminder_cli.py process --batch-size 20
"""

import argparse
import logging
import sys
from typing import List, Optional

from reminders.application.wiring import (
    build_dispatch_service,
    build_escalation_service,
    build_stats_service,
    open_directory,
)
from reminders.core.logging import setup_logging


def _print_summary(title: str, values: dict) -> None:
    print(f"== {title} ==")
    for key, value in values.items():
        print(f"- {key}: {value}")


def cmd_stats(args: argparse.Namespace) -> int:
    with open_directory() as directory:
        _print_summary("Queue", build_stats_service(directory).summary())
    return 0


def cmd_mandatory(args: argparse.Namespace) -> int:
    with open_directory() as directory:
        courses = build_stats_service(directory).mandatory_courses()
    if not courses:
        print("Aucun cours obligatoire.")
        return 0
    for c in courses:
        print(f"{c['id']:>6}  {c['fullname']}  deadline={c['deadline_days']}d  incomplete={c['incomplete_users']}")
    return 0


def cmd_queue(args: argparse.Namespace) -> int:
    with open_directory() as directory:
        items = build_stats_service(directory).queue_status(limit=args.limit)
    if not items:
        print("File vide.")
        return 0
    for i in items:
        print(
            f"#{i['id']:<6} L{i['level']} {i['recipient_type']:<14} {i['recipient_address']}"
            f"  user={i['user_id']} course={i['course_id']}  {i['created_at']:%Y-%m-%d %H:%M}"
        )
    return 0


def _evaluate(dry_run: bool) -> int:
    with open_directory() as directory:
        summary = build_escalation_service(directory).evaluate(dry_run=dry_run)
    _print_summary(
        "Evaluation (dry run)" if dry_run else "Evaluation",
        {
            "courses": summary.courses,
            "users": summary.users,
            "levels queued": summary.queued,
            "levels skipped": summary.skipped,
            "queue items": summary.items,
        },
    )
    for warning in summary.warnings:
        print(f"! {warning}")
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    return _evaluate(dry_run=True)


def cmd_run(args: argparse.Namespace) -> int:
    return _evaluate(dry_run=False)


def cmd_process(args: argparse.Namespace) -> int:
    with open_directory() as directory:
        # synchrone : pas de délégation au worker Celery
        service = build_dispatch_service(directory, scheduler=lambda scope: None)
        total = service.drain_all(batch_size=args.batch_size)
    _print_summary(
        "Process",
        {
            "sent": total.sent,
            "failed": total.failed,
            "skipped": total.skipped,
            "recovered": total.recovered,
            "remaining": total.remaining,
        },
    )
    return 1 if total.failed else 0


def cmd_retry(args: argparse.Namespace) -> int:
    with open_directory() as directory:
        n = build_dispatch_service(directory).retry_failed(args.ids or None)
    print(f"{n} item(s) remis en file.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reminder_cli", description="Relances de cours obligatoires")
    parser.add_argument("-v", "--verbose", action="store_true", help="logs DEBUG")
    sub = parser.add_subparsers(dest="action", required=True)

    sub.add_parser("stats", help="compteurs de la file").set_defaults(func=cmd_stats)
    sub.add_parser("mandatory", help="cours obligatoires").set_defaults(func=cmd_mandatory)

    p = sub.add_parser("queue", help="prochains items pending")
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_queue)

    sub.add_parser("test", help="évaluation à blanc").set_defaults(func=cmd_test)
    sub.add_parser("run", help="évaluation réelle").set_defaults(func=cmd_run)

    p = sub.add_parser("process", help="vide la file (synchrone)")
    p.add_argument("--batch-size", type=int, default=None)
    p.set_defaults(func=cmd_process)

    p = sub.add_parser("retry", help="failed -> pending")
    p.add_argument("ids", nargs="*", type=int)
    p.set_defaults(func=cmd_retry)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
