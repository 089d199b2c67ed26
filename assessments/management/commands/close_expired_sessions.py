import time

from django.core.management.base import BaseCommand

from assessments.service_utils.submissions import (
    close_expired_sessions,
    open_sessions,
    timer_expired,
    watch_open_sessions,
)


class Command(BaseCommand):
    help = "Auto-submit timed sessions whose time limit has run out"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            dest="dry_run",
            help="Only report how many sessions have expired",
        )
        parser.add_argument(
            "--watch",
            action="store_true",
            help="Close expired sessions, then keep running until every open session has expired",
        )

    def handle(self, *args, **options):
        if options.get("dry_run"):
            expired = sum(1 for submission in open_sessions() if timer_expired(submission))
            self.stdout.write(f"{expired} expired session(s) would be closed")
            return

        closed = close_expired_sessions()
        for submission in closed:
            self.stdout.write(
                f"Closed session #{submission.pk} for {submission.user} "
                f"on '{submission.assessment.title}'"
            )
        self.stdout.write(self.style.SUCCESS(f"Closed {len(closed)} expired session(s)"))

        if options.get("watch"):
            countdowns = watch_open_sessions()
            self.stdout.write(f"Watching {len(countdowns)} open session(s)")
            while not all(countdown.completed for countdown in countdowns):
                time.sleep(1)
            self.stdout.write(self.style.SUCCESS("All watched sessions expired"))
