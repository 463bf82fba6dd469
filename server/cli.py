"""
LearnBuddy maintenance CLI.

Usage:
    python -m server.cli init-db
    python -m server.cli create-user --username alice --email alice@example.com
    python -m server.cli due <user_id> [--limit 10]
    python -m server.cli stats <user_id>
    python -m server.cli expire-subscriptions
    python -m server.cli reminders [--mark-sent]
    python -m server.cli schedule --quality 4 --interval 6 --ease 2.5 --correct 2
"""

import argparse
import json
import logging
import sys
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from server.config import Settings
from server.db.session import get_db, init_db
from server.services import plan_service, reminder_service, review_service, user_service
from study.scheduler import sm2_schedule


def cmd_init_db(args, settings: Settings):
    init_db(settings)
    print(f"Database ready: {settings.database_url}")


def cmd_create_user(args, settings: Settings):
    init_db(settings)
    with get_db(settings) as db:
        try:
            user = user_service.create_user(db, args.username, args.email)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        reminder_service.initialize_for_user(db, user.id)
        print(user.id)


def cmd_due(args, settings: Settings):
    """Show words due for review."""
    with get_db(settings) as db:
        due = review_service.get_words_to_review(db, args.user_id, args.limit)
    if not due:
        print("No words due today.")
        return
    print(f"\n{len(due)} word(s) due for review:\n")
    for i, w in enumerate(due, 1):
        nxt = w.next_review.date().isoformat() if w.next_review else "-"
        print(f"  {i}. {w.word:<20} next={nxt}  ease={w.ease_factor:.2f}  "
              f"correct={w.correct_count}  incorrect={w.incorrect_count}")


def cmd_stats(args, settings: Settings):
    with get_db(settings) as db:
        stats = review_service.get_stats(db, args.user_id)
        progress = user_service.get_progress(db, args.user_id)
    print(json.dumps({"review": stats, "progress": progress}, indent=2))


def cmd_expire(args, settings: Settings):
    with get_db(settings) as db:
        count = plan_service.process_expired_subscriptions(db)
    print(f"Expired {count} subscription(s).")


def cmd_reminders(args, settings: Settings):
    """List learners due a reminder today; optionally mark them as reminded."""
    with get_db(settings) as db:
        targets = reminder_service.users_due_reminder(db)
        if args.mark_sent:
            for t in targets:
                reminder_service.record_reminder_sent(db, t["user_id"])
    if not targets:
        print("Nobody to remind today.")
        return
    for t in targets:
        print(f"  {t['username']} <{t['email']}>  {t['preferred_time']} {t['timezone']}  "
              f"due={t['due_words']}")


def cmd_schedule(args, settings: Settings):
    """Preview the next SM-2 step without touching the database."""
    result = sm2_schedule(
        args.quality,
        interval_days=args.interval,
        ease_factor=args.ease,
        correct_count=args.correct,
        incorrect_count=args.incorrect,
        is_new=args.new,
    )
    result["reviewed_at"] = result["reviewed_at"].isoformat()
    result["next_review"] = result["next_review"].isoformat()
    print(json.dumps(result, indent=2))


def main():
    parser = argparse.ArgumentParser(
        description="LearnBuddy maintenance commands",
        prog="python -m server.cli",
    )
    parser.add_argument(
        '--database-url', default=None,
        help="Database URL (default: $DATABASE_URL or sqlite:///./learnbuddy.db)",
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log at INFO level')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init-db', help='Create missing tables')

    create_parser = subparsers.add_parser('create-user', help='Register a learner on the free plan')
    create_parser.add_argument('--username', required=True)
    create_parser.add_argument('--email', required=True)

    due_parser = subparsers.add_parser('due', help='Show words due for review')
    due_parser.add_argument('user_id')
    due_parser.add_argument('--limit', type=int, default=10)

    stats_parser = subparsers.add_parser('stats', help='Show review statistics')
    stats_parser.add_argument('user_id')

    subparsers.add_parser('expire-subscriptions',
                          help='Downgrade subscriptions whose scheduled cancellation is due')

    reminders_parser = subparsers.add_parser('reminders', help='List learners due a reminder')
    reminders_parser.add_argument('--mark-sent', action='store_true',
                                  help='Record that a reminder was sent to each listed learner')

    schedule_parser = subparsers.add_parser('schedule', help='Preview one SM-2 scheduling step')
    schedule_parser.add_argument('--quality', type=int, required=True, help='Recall grade 0-5')
    schedule_parser.add_argument('--interval', type=int, default=1)
    schedule_parser.add_argument('--ease', type=float, default=2.5)
    schedule_parser.add_argument('--correct', type=int, default=0)
    schedule_parser.add_argument('--incorrect', type=int, default=0)
    schedule_parser.add_argument('--new', action='store_true', help='Treat as a first review')

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    settings = Settings(database_url=args.database_url)

    commands = {
        'init-db': cmd_init_db,
        'create-user': cmd_create_user,
        'due': cmd_due,
        'stats': cmd_stats,
        'expire-subscriptions': cmd_expire,
        'reminders': cmd_reminders,
        'schedule': cmd_schedule,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    handler(args, settings)


if __name__ == '__main__':
    main()
