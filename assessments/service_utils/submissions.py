"""Business logic for loading assessments and writing submissions.

Views call these helpers so the HTTP layer stays thin. Identity always comes
from the caller (the authenticated request user); every write goes through
:func:`save_draft`, :func:`submit` or :func:`close_session`, which lock the
(assessment, user) row before touching it.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional

from django.db import transaction
from django.db.models import F, Prefetch, Q, QuerySet
from django.utils import timezone
from rest_framework import exceptions

from assessments.models import Assessment, QuizQuestion, Submission
from assessments.utils.files import get_file_type
from courses.models import Course, CourseEnrollment

from .availability import AvailabilityResult, check_availability
from .countdown import Countdown, Scheduler, countdown_for

logger = logging.getLogger(__name__)


QUESTIONS_PREFETCH = Prefetch(
    "questions",
    queryset=QuizQuestion.objects.order_by("order"),
)


def _published_assessments() -> QuerySet[Assessment]:
    return (
        Assessment.objects.filter(is_published=True)
        .select_related("course")
        .prefetch_related(QUESTIONS_PREFETCH)
    )


def list_course_assessments(course: Course) -> List[Assessment]:
    return list(_published_assessments().filter(course=course).order_by("due_date", "id"))


def get_published_assessment(assessment_id: int) -> Assessment:
    try:
        return _published_assessments().get(pk=assessment_id)
    except Assessment.DoesNotExist as exc:
        raise exceptions.NotFound("Assessment not found") from exc


def get_submission(user, assessment: Assessment) -> Submission | None:
    return Submission.objects.filter(assessment=assessment, user=user).first()


def list_user_submissions(user, course: Course | None = None) -> QuerySet[Submission]:
    queryset = Submission.objects.filter(user=user).select_related("assessment", "course")
    if course is not None:
        queryset = queryset.filter(course=course)
    return queryset.order_by("-submitted_at", "-updated_at")


def _ensure_available(assessment: Assessment, now: datetime) -> AvailabilityResult:
    availability = check_availability(assessment, now)
    if not availability.allowed:
        raise exceptions.PermissionDenied(availability.reason)
    return availability


def get_time_left(submission: Submission | None, assessment: Assessment, now: datetime | None = None) -> timedelta | None:
    """Remaining session time; the full limit when no session has started."""

    time_limit = assessment.time_limit
    if not time_limit:
        return None
    if submission is None or submission.started_at is None:
        return time_limit
    now = now or timezone.now()
    remaining = submission.started_at + time_limit - now
    if remaining < timedelta(0):
        remaining = timedelta(0)
    return remaining


def timer_expired(submission: Submission, now: datetime | None = None) -> bool:
    time_limit = submission.assessment.time_limit
    if not time_limit or submission.started_at is None:
        return False
    now = now or timezone.now()
    return now > submission.started_at + time_limit


def get_attempts_left(submission: Submission | None, assessment: Assessment) -> int | None:
    if assessment.attempts_allowed is None:
        return None
    if submission is None or submission.status in (
        Submission.Status.DRAFT,
        Submission.Status.MISSING,
    ):
        used = 0
    else:
        used = submission.attempt_number
    return max(0, assessment.attempts_allowed - used)


@dataclass
class LoadedAssessment:
    assessment: Assessment
    submission: Optional[Submission]
    availability: AvailabilityResult
    time_left: Optional[timedelta]
    attempts_left: Optional[int]


def load_assessment(user, assessment_id: int, *, now: datetime | None = None) -> LoadedAssessment:
    """Fetch a published assessment with the caller's submission, if any.

    Raises ``PermissionDenied`` carrying the gate's reason when the
    availability window does not include ``now``.
    """

    now = now or timezone.now()
    assessment = get_published_assessment(assessment_id)
    availability = _ensure_available(assessment, now)
    submission = get_submission(user, assessment)
    return LoadedAssessment(
        assessment=assessment,
        submission=submission,
        availability=availability,
        time_left=get_time_left(submission, assessment, now),
        attempts_left=get_attempts_left(submission, assessment),
    )


def _lock_submission(user, assessment: Assessment) -> Submission:
    submission, _ = Submission.objects.select_for_update().get_or_create(
        assessment=assessment,
        user=user,
        defaults={"course": assessment.course, "status": Submission.Status.DRAFT},
    )
    # Reuse the already-loaded assessment for deadline checks.
    submission.assessment = assessment
    return submission


@transaction.atomic
def start_session(user, assessment_id: int, *, now: datetime | None = None) -> Submission:
    """Open (or resume) a timed session for ``assessment_id``.

    The session start is stamped once per attempt; reloads read the same
    ``started_at`` so the deadline never moves.
    """

    now = now or timezone.now()
    assessment = get_published_assessment(assessment_id)
    _ensure_available(assessment, now)
    if not assessment.is_timed:
        raise exceptions.ValidationError("This assessment has no time limit")

    submission = _lock_submission(user, assessment)
    if submission.status == Submission.Status.GRADED:
        raise exceptions.ValidationError("This submission has already been graded")

    if submission.has_open_session:
        return submission
    if submission.status not in (Submission.Status.DRAFT, Submission.Status.MISSING):
        if get_attempts_left(submission, assessment) == 0:
            raise exceptions.ValidationError("No attempts left for this assessment")

    submission.started_at = now
    submission.save(update_fields=["started_at", "updated_at"])
    logger.info(
        "Timed session started",
        extra={
            "assessment_id": assessment.id,
            "user_id": user.pk,
            "deadline": (now + assessment.time_limit).isoformat(),
        },
    )
    return submission


@dataclass
class SubmissionDraft:
    """In-memory accumulation of a learner's answer before it is written."""

    text: str = ""
    files: list[dict] = field(default_factory=list)
    answers: dict[int, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SubmissionDraft":
        draft = cls()
        draft.set_text(data.get("text") or "")
        for file_info in data.get("files") or []:
            draft.add_file(file_info)
        answers = data.get("answers") or []
        if isinstance(answers, Mapping):
            answers = [
                {"question_id": key, "answer": value} for key, value in answers.items()
            ]
        for item in answers:
            if not isinstance(item, Mapping) or "question_id" not in item:
                raise exceptions.ValidationError({"answers": "Each answer needs a question_id"})
            draft.set_answer(item["question_id"], item.get("answer"))
        return draft

    @classmethod
    def from_submission(cls, submission: Submission) -> "SubmissionDraft":
        return cls.from_payload(
            {
                "text": submission.text,
                "files": submission.files,
                "answers": submission.answers,
            }
        )

    def set_text(self, text: str) -> "SubmissionDraft":
        self.text = text
        return self

    def add_file(self, file_info: Mapping[str, Any]) -> "SubmissionDraft":
        missing = [key for key in ("id", "name", "url") if not file_info.get(key)]
        if missing:
            raise exceptions.ValidationError(
                {"files": f"File entry is missing: {', '.join(missing)}"}
            )
        entry = {
            "id": str(file_info["id"]),
            "name": file_info["name"],
            "url": file_info["url"],
            "type": file_info.get("type") or get_file_type(file_info["name"]),
        }
        self.files = [item for item in self.files if item["id"] != entry["id"]]
        self.files.append(entry)
        return self

    def remove_file(self, file_id: str) -> "SubmissionDraft":
        self.files = [item for item in self.files if item["id"] != str(file_id)]
        return self

    def set_answer(self, question_id, answer: Any) -> "SubmissionDraft":
        try:
            key = int(question_id)
        except (TypeError, ValueError) as exc:
            raise exceptions.ValidationError({"answers": "Invalid question id"}) from exc
        self.answers[key] = answer
        return self

    def is_empty(self) -> bool:
        return not (self.text.strip() or self.files or self.answers)

    def as_payload(self) -> dict:
        return {
            "text": self.text,
            "files": list(self.files),
            "answers": [
                {"question_id": question_id, "answer": answer}
                for question_id, answer in sorted(self.answers.items())
            ],
        }


def _option_index(question: QuizQuestion, answer: Any) -> int | None:
    if isinstance(answer, bool):
        answer = str(answer)
    if isinstance(answer, int):
        return answer
    if isinstance(answer, str):
        value = answer.strip()
        if value.isdigit():
            return int(value)
        for index, option in enumerate(question.options or []):
            if str(option).strip().lower() == value.lower():
                return index
    return None


def check_quiz_answers(assessment: Assessment, answers: Mapping[int, Any]) -> list[dict]:
    """Annotate answers with correctness for objective questions.

    Essay, short answer and upload questions are left for the grader with
    ``is_correct`` and ``points_awarded`` set to ``None``.
    """

    questions = {question.id: question for question in assessment.questions.all()}
    unknown = sorted(set(answers) - set(questions))
    if unknown:
        raise exceptions.ValidationError(
            {"answers": f"Questions do not belong to this quiz: {unknown}"}
        )

    checked: list[dict] = []
    for question in sorted(questions.values(), key=lambda item: item.order):
        if question.id not in answers:
            continue
        answer = answers[question.id]
        entry = {
            "question_id": question.id,
            "answer": answer,
            "is_correct": None,
            "points_awarded": None,
        }
        if question.is_objective:
            is_correct = _option_index(question, answer) == question.correct_option_index
            entry["is_correct"] = is_correct
            entry["points_awarded"] = question.points if is_correct else 0
        checked.append(entry)
    return checked


def _apply_draft(submission: Submission, draft: SubmissionDraft, *, check_answers: bool) -> None:
    assessment = submission.assessment
    if draft.answers and assessment.kind != Assessment.Kind.QUIZ:
        raise exceptions.ValidationError({"answers": "Only quizzes accept answers"})

    submission.text = draft.text
    submission.files = list(draft.files)
    if check_answers:
        submission.answers = check_quiz_answers(assessment, draft.answers)
    else:
        known = {question.id for question in assessment.questions.all()}
        unknown = sorted(set(draft.answers) - known)
        if unknown:
            raise exceptions.ValidationError(
                {"answers": f"Questions do not belong to this quiz: {unknown}"}
            )
        submission.answers = draft.as_payload()["answers"]


@transaction.atomic
def save_draft(
    user,
    assessment_id: int,
    draft: SubmissionDraft,
    *,
    now: datetime | None = None,
) -> Submission:
    now = now or timezone.now()
    assessment = get_published_assessment(assessment_id)
    _ensure_available(assessment, now)

    submission = _lock_submission(user, assessment)
    if submission.status != Submission.Status.DRAFT and not submission.has_open_session:
        raise exceptions.ValidationError("This submission has already been submitted")
    if timer_expired(submission, now):
        raise exceptions.ValidationError("Time for this attempt has expired")

    _apply_draft(submission, draft, check_answers=False)
    submission.save()
    logger.info(
        "Submission draft saved",
        extra={"assessment_id": assessment.id, "user_id": user.pk},
    )
    return submission


def _next_attempt_number(submission: Submission) -> int:
    if submission.status in (Submission.Status.SUBMITTED, Submission.Status.LATE):
        return submission.attempt_number + 1
    return submission.attempt_number


def _write_submission(
    submission: Submission,
    draft: SubmissionDraft,
    *,
    now: datetime,
    auto: bool,
) -> Submission:
    assessment = submission.assessment
    if submission.status == Submission.Status.GRADED:
        raise exceptions.ValidationError("This submission has already been graded")

    attempt_number = _next_attempt_number(submission)
    if assessment.attempts_allowed is not None and attempt_number > assessment.attempts_allowed:
        raise exceptions.ValidationError("No attempts left for this assessment")

    if not auto and assessment.kind != Assessment.Kind.QUIZ and draft.is_empty():
        raise exceptions.ValidationError("Provide text or at least one file")

    _apply_draft(submission, draft, check_answers=True)

    deadline = submission.deadline
    is_late = deadline is not None and now > deadline
    submission.transition_to(Submission.Status.LATE if is_late else Submission.Status.SUBMITTED)
    submission.attempt_number = attempt_number
    submission.submitted_at = now
    if submission.started_at is not None:
        elapsed = now - submission.started_at
        time_limit = assessment.time_limit
        submission.time_spent = min(elapsed, time_limit) if time_limit else elapsed
    submission.save()

    logger.info(
        "Submission written",
        extra={
            "assessment_id": assessment.id,
            "user_id": submission.user_id,
            "status": submission.status,
            "attempt_number": submission.attempt_number,
            "auto": auto,
        },
    )
    return submission


@transaction.atomic
def submit(
    user,
    assessment_id: int,
    draft: SubmissionDraft,
    *,
    auto: bool = False,
    now: datetime | None = None,
) -> Submission:
    """Create or update the caller's submission and mark it submitted or late.

    Manual submits pass through the availability gate; ``auto`` submits fired
    by an expired timer skip it so the work is never lost.
    """

    now = now or timezone.now()
    assessment = get_published_assessment(assessment_id)
    if not auto:
        _ensure_available(assessment, now)

    submission = _lock_submission(user, assessment)
    return _write_submission(submission, draft, now=now, auto=auto)


def open_sessions() -> QuerySet[Submission]:
    """Timed attempts that were started and not written yet."""

    started = Submission.objects.filter(
        started_at__isnull=False,
        assessment__time_limit__isnull=False,
    )
    return (
        started.filter(
            Q(status=Submission.Status.DRAFT)
            | Q(
                status__in=[
                    Submission.Status.SUBMITTED,
                    Submission.Status.LATE,
                    Submission.Status.MISSING,
                ]
            )
            & (Q(submitted_at__isnull=True) | Q(submitted_at__lt=F("started_at")))
        )
        .select_related("assessment", "user")
        .order_by("started_at")
    )


def close_session(submission_id: int, *, now: datetime | None = None) -> Submission | None:
    """Auto-submit one open session once its deadline has passed.

    Returns ``None`` when the session was already written or still has time.
    """

    now = now or timezone.now()
    with transaction.atomic():
        submission = (
            Submission.objects.select_for_update()
            .select_related("assessment", "user")
            .get(pk=submission_id)
        )
        if not submission.has_open_session or now < submission.deadline:
            return None
        draft = SubmissionDraft.from_submission(submission)
        return _write_submission(submission, draft, now=now, auto=True)


def close_expired_sessions(*, now: datetime | None = None) -> list[Submission]:
    """Auto-submit open sessions whose time limit has run out."""

    now = now or timezone.now()
    closed: list[Submission] = []
    for candidate in open_sessions():
        if not timer_expired(candidate, now):
            continue
        submission = close_session(candidate.pk, now=now)
        if submission is not None:
            closed.append(submission)
    return closed


def watch_open_sessions(
    *, now: datetime | None = None, scheduler: Optional[Scheduler] = None
) -> list[Countdown]:
    """Arm a countdown per open session; each one auto-submits on expiry."""

    countdowns: list[Countdown] = []
    for submission in open_sessions():
        countdown = countdown_for(
            submission,
            functools.partial(close_session, submission.pk),
            now=now,
            scheduler=scheduler,
        )
        countdown.start()
        countdowns.append(countdown)
    return countdowns


def _enrolled_student_ids(course_id: int) -> Iterable[int]:
    return CourseEnrollment.objects.filter(
        course_id=course_id,
        status__in=[CourseEnrollment.Status.ENROLLED, CourseEnrollment.Status.COMPLETED],
    ).values_list("student_id", flat=True)


def _submitter_ids(assessment: Assessment) -> set[int]:
    return set(
        Submission.objects.filter(assessment=assessment).values_list("user_id", flat=True)
    )


def mark_missing_submissions(*, now: datetime | None = None) -> int:
    """Record ``missing`` submissions for enrolled students past the due date.

    Each assessment is handled in its own transaction. Rows created by a
    student in the meantime win over the ``missing`` placeholder.
    """

    now = now or timezone.now()
    overdue = Assessment.objects.filter(
        is_published=True,
        due_date__isnull=False,
        due_date__lt=now,
    ).select_related("course")

    created = 0
    for assessment in overdue:
        submitted_ids = _submitter_ids(assessment)
        missing_ids = [
            student_id
            for student_id in _enrolled_student_ids(assessment.course_id)
            if student_id not in submitted_ids
        ]
        if not missing_ids:
            continue
        with transaction.atomic():
            Submission.objects.bulk_create(
                [
                    Submission(
                        assessment=assessment,
                        course=assessment.course,
                        user_id=student_id,
                        status=Submission.Status.MISSING,
                    )
                    for student_id in missing_ids
                ],
                ignore_conflicts=True,
            )
        recorded = Submission.objects.filter(
            assessment=assessment,
            user_id__in=missing_ids,
            status=Submission.Status.MISSING,
        ).count()
        created += recorded
        logger.info(
            "Missing submissions recorded",
            extra={"assessment_id": assessment.id, "count": recorded},
        )
    return created
