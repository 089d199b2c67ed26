from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from django.contrib.auth import get_user_model
from django.utils import timezone

from assessments.models import Assessment, QuizQuestion, Submission
from courses.models import Course, CourseEnrollment


def create_user(username: str | None = None, *, is_staff: bool = False, **extra):
    user_model = get_user_model()
    return user_model.objects.create_user(
        username=username or f"user_{uuid4().hex[:8]}",
        password="pass",
        is_staff=is_staff,
        **extra,
    )


def create_course(*, title: str | None = None, is_published: bool = True, **extra) -> Course:
    slug = extra.pop("slug", None) or f"course-{uuid4().hex[:8]}"
    return Course.objects.create(
        slug=slug,
        title=title or f"Course {slug}",
        is_published=is_published,
        published_at=timezone.now() if is_published else None,
        **extra,
    )


def enroll(user, course: Course) -> CourseEnrollment:
    return CourseEnrollment.objects.create(
        course=course,
        student=user,
        status=CourseEnrollment.Status.ENROLLED,
    )


def create_assessment(
    *,
    course: Course | None = None,
    kind: str = Assessment.Kind.ASSIGNMENT,
    title: str | None = None,
    total_points: int = 100,
    passing_score: int = 70,
    is_published: bool = True,
    time_limit_minutes: int | None = None,
    **extra,
) -> Assessment:
    course = course or create_course()
    if kind == Assessment.Kind.QUIZ and time_limit_minutes is None:
        time_limit_minutes = 30
    time_limit = (
        timedelta(minutes=time_limit_minutes) if time_limit_minutes is not None else None
    )
    submission_type = extra.pop(
        "submission_type",
        Assessment.SubmissionType.QUIZ if kind == Assessment.Kind.QUIZ else Assessment.SubmissionType.TEXT,
    )
    return Assessment.objects.create(
        course=course,
        kind=kind,
        title=title or f"{kind.title()} {uuid4().hex[:6]}",
        total_points=total_points,
        passing_score=passing_score,
        is_published=is_published,
        time_limit=time_limit,
        submission_type=submission_type,
        **extra,
    )


def add_question(
    assessment: Assessment,
    *,
    order: int = 1,
    question_type: str = QuizQuestion.QuestionType.MULTIPLE_CHOICE,
    options: list | None = None,
    correct_option_index: int | None = 0,
    points: int = 1,
    **extra,
) -> QuizQuestion:
    if options is None:
        if question_type == QuizQuestion.QuestionType.TRUE_FALSE:
            options = ["True", "False"]
        elif question_type == QuizQuestion.QuestionType.MULTIPLE_CHOICE:
            options = ["A", "B", "C"]
        else:
            options = []
            correct_option_index = None
    return QuizQuestion.objects.create(
        assessment=assessment,
        order=order,
        text=extra.pop("text", f"Question {order}"),
        question_type=question_type,
        options=options,
        correct_option_index=correct_option_index,
        points=points,
        **extra,
    )


def create_submission(
    *,
    assessment: Assessment,
    user,
    status: str = Submission.Status.SUBMITTED,
    **extra,
) -> Submission:
    defaults = {"submitted_at": timezone.now()} if status != Submission.Status.DRAFT else {}
    defaults.update(extra)
    return Submission.objects.create(
        assessment=assessment,
        course=assessment.course,
        user=user,
        status=status,
        **defaults,
    )
