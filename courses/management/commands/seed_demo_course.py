from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from assessments.models import Assessment, QuizQuestion
from courses.models import Course, CourseEnrollment


class Command(BaseCommand):
    help = "Create a published demo course with assessments for manual checks"

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            default="student",
            help="User to enroll in the course (created when missing)",
        )
        parser.add_argument(
            "--password",
            default="testpass123",
            help="Password for a newly created user",
        )
        parser.add_argument(
            "--slug",
            default="demo-python",
            help="Course slug",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        username: str = options["username"]
        password: str = options["password"]
        slug: str = options["slug"]

        User = get_user_model()

        user, created = User.objects.get_or_create(
            username=username, defaults={"email": "", "is_active": True}
        )
        if created:
            user.set_password(password)
            user.save(update_fields=["password"])

        now = timezone.now()
        course, _ = Course.objects.update_or_create(
            slug=slug,
            defaults={
                "title": "Python for Beginners",
                "subtitle": "From variables to small programs",
                "short_description": "A short hands-on introduction to Python.",
                "level": Course.Level.BEGINNER,
                "language": Course.Language.EN,
                "duration_weeks": 2,
                "instructor_name": "Demo Instructor",
                "is_published": True,
                "published_at": now,
                "enrollment_open": True,
            },
        )

        # Start from a clean slate so the command can be re-run.
        Assessment.objects.filter(course=course).delete()

        Assessment.objects.create(
            course=course,
            kind=Assessment.Kind.ASSIGNMENT,
            title="Write your first script",
            instructions=(
                "Write a script that prints the numbers **1 to 10**.\n\n"
                "Upload the `.py` file or paste the code as text."
            ),
            due_date=now + timedelta(days=7),
            total_points=100,
            passing_score=60,
            submission_type=Assessment.SubmissionType.BOTH,
            attempts_allowed=2,
            is_published=True,
        )

        quiz = Assessment.objects.create(
            course=course,
            kind=Assessment.Kind.QUIZ,
            title="Basics quiz",
            instructions="You have 10 minutes. The quiz is submitted when time runs out.",
            total_points=3,
            passing_score=2,
            submission_type=Assessment.SubmissionType.QUIZ,
            time_limit=timedelta(minutes=10),
            shuffle_answers=True,
            show_correct_answers=True,
            is_published=True,
        )
        QuizQuestion.objects.bulk_create(
            [
                QuizQuestion(
                    assessment=quiz,
                    order=1,
                    text="Which keyword defines a function?",
                    question_type=QuizQuestion.QuestionType.MULTIPLE_CHOICE,
                    options=["func", "def", "lambda"],
                    correct_option_index=1,
                ),
                QuizQuestion(
                    assessment=quiz,
                    order=2,
                    text="Lists are immutable.",
                    question_type=QuizQuestion.QuestionType.TRUE_FALSE,
                    options=list(QuizQuestion.TRUE_FALSE_OPTIONS),
                    correct_option_index=1,
                ),
                QuizQuestion(
                    assessment=quiz,
                    order=3,
                    text="Explain what a loop is in one sentence.",
                    question_type=QuizQuestion.QuestionType.SHORT_ANSWER,
                ),
            ]
        )

        Assessment.objects.create(
            course=course,
            kind=Assessment.Kind.ACTIVITY,
            title="Pair programming session",
            instructions="Solve the kata together and describe who did what.",
            due_date=now + timedelta(days=14),
            total_points=10,
            passing_score=5,
            submission_type=Assessment.SubmissionType.ACTIVITY,
            is_group_activity=True,
            min_group_size=2,
            max_group_size=3,
            is_published=True,
        )

        enrollment, _ = CourseEnrollment.objects.get_or_create(
            course=course,
            student=user,
            defaults={"status": CourseEnrollment.Status.ENROLLED},
        )

        self.stdout.write(self.style.SUCCESS("Demo course is ready."))
        self.stdout.write(
            f"Course: {course.title} (/{course.slug}) | "
            f"Assessments: {Assessment.objects.filter(course=course).count()}"
        )
        self.stdout.write(
            f"User: {user.username} | Enrollment: {enrollment.get_status_display()}"
        )
