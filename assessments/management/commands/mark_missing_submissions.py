from django.core.management.base import BaseCommand

from assessments.service_utils.submissions import mark_missing_submissions


class Command(BaseCommand):
    help = "Record missing submissions for enrolled students after the due date"

    def handle(self, *args, **options):
        created = mark_missing_submissions()
        self.stdout.write(
            self.style.SUCCESS(f"Marked {created} submission(s) as missing")
        )
