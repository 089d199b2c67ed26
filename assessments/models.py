from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from courses.models import Course, TimeStampedModel


class Assessment(TimeStampedModel):
    """Assignment, quiz or activity authored by an admin for a course."""

    class Kind(models.TextChoices):
        ASSIGNMENT = "assignment", "Assignment"
        QUIZ = "quiz", "Quiz"
        ACTIVITY = "activity", "Activity"

    class SubmissionType(models.TextChoices):
        FILE = "file", "File"
        TEXT = "text", "Text"
        BOTH = "both", "Text and files"
        QUIZ = "quiz", "Quiz answers"
        ACTIVITY = "activity", "Activity"

    class ContentFormat(models.TextChoices):
        MARKDOWN = "markdown", "Markdown"
        HTML = "html", "HTML"
        PLAIN = "plain", "Plain text"

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="assessments",
    )
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.ASSIGNMENT)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    instructions = models.TextField(blank=True)
    instructions_format = models.CharField(
        max_length=20,
        choices=ContentFormat.choices,
        default=ContentFormat.MARKDOWN,
    )
    attachments = models.JSONField(default=list, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    available_from = models.DateTimeField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)
    total_points = models.PositiveIntegerField(default=100)
    passing_score = models.PositiveIntegerField(default=0)
    is_published = models.BooleanField(default=False)
    submission_type = models.CharField(
        max_length=20,
        choices=SubmissionType.choices,
        default=SubmissionType.TEXT,
    )
    time_limit = models.DurationField(null=True, blank=True)
    attempts_allowed = models.PositiveIntegerField(null=True, blank=True)

    shuffle_questions = models.BooleanField(default=False)
    shuffle_answers = models.BooleanField(default=False)
    show_correct_answers = models.BooleanField(default=False)

    is_group_activity = models.BooleanField(default=False)
    min_group_size = models.PositiveSmallIntegerField(null=True, blank=True)
    max_group_size = models.PositiveSmallIntegerField(null=True, blank=True)
    submission_instructions = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="authored_assessments",
    )

    class Meta:
        ordering = ("course", "due_date", "id")
        indexes = [
            models.Index(fields=["course", "is_published"], name="assess_course_pub_idx"),
            models.Index(fields=["course", "kind"], name="assess_course_kind_idx"),
        ]

    def clean(self):
        super().clean()

        if self.passing_score > self.total_points:
            raise ValidationError(
                {"passing_score": "Passing score cannot exceed total points."}
            )
        if (
            self.available_from
            and self.available_until
            and self.available_from > self.available_until
        ):
            raise ValidationError(
                {"available_until": "Availability window must end after it starts."}
            )
        if self.kind == self.Kind.QUIZ and not self.time_limit:
            raise ValidationError({"time_limit": "Quizzes require a time limit."})

        has_group_sizes = self.min_group_size is not None or self.max_group_size is not None
        if self.kind != self.Kind.ACTIVITY:
            if self.is_group_activity or has_group_sizes:
                raise ValidationError("Group settings are only available for activities.")
        else:
            if self.min_group_size is not None and self.min_group_size < 1:
                raise ValidationError({"min_group_size": "Group size must be at least 1."})
            if (
                self.min_group_size is not None
                and self.max_group_size is not None
                and self.min_group_size > self.max_group_size
            ):
                raise ValidationError(
                    {"max_group_size": "Maximum group size cannot be below the minimum."}
                )

    def __str__(self) -> str:
        return f"{self.course}: {self.title} ({self.kind})"

    @property
    def is_timed(self) -> bool:
        return bool(self.time_limit)


class QuizQuestion(TimeStampedModel):
    class QuestionType(models.TextChoices):
        MULTIPLE_CHOICE = "multiple_choice", "Multiple choice"
        TRUE_FALSE = "true_false", "True / false"
        SHORT_ANSWER = "short_answer", "Short answer"
        ESSAY = "essay", "Essay"
        FILE_UPLOAD = "file_upload", "File upload"

    OBJECTIVE_TYPES = (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)
    TRUE_FALSE_OPTIONS = ["True", "False"]

    assessment = models.ForeignKey(
        Assessment,
        on_delete=models.CASCADE,
        related_name="questions",
    )
    order = models.PositiveIntegerField()
    text = models.TextField()
    question_type = models.CharField(
        max_length=20,
        choices=QuestionType.choices,
        default=QuestionType.MULTIPLE_CHOICE,
    )
    options = models.JSONField(default=list, blank=True)
    correct_option_index = models.PositiveSmallIntegerField(null=True, blank=True)
    correct_answer = models.CharField(max_length=500, blank=True)
    points = models.PositiveIntegerField(default=1)
    feedback = models.TextField(blank=True)

    class Meta:
        ordering = ("assessment", "order")
        unique_together = ("assessment", "order")

    def clean(self):
        super().clean()

        if self.assessment_id and self.assessment.kind != Assessment.Kind.QUIZ:
            raise ValidationError("Questions can only be attached to quizzes.")
        if self.question_type == self.QuestionType.TRUE_FALSE and not self.options:
            self.options = list(self.TRUE_FALSE_OPTIONS)
        if self.question_type in self.OBJECTIVE_TYPES:
            if len(self.options or []) < 2:
                raise ValidationError({"options": "Provide at least two options."})
            if self.correct_option_index is None or self.correct_option_index >= len(
                self.options
            ):
                raise ValidationError(
                    {"correct_option_index": "Correct option must point to one of the options."}
                )

    def __str__(self) -> str:
        return f"{self.assessment.title} #{self.order}"

    @property
    def is_objective(self) -> bool:
        return self.question_type in self.OBJECTIVE_TYPES


class Submission(TimeStampedModel):
    """A learner's response to an assessment; one per (assessment, user)."""

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        LATE = "late", "Late"
        GRADED = "graded", "Graded"
        MISSING = "missing", "Missing"

    STATUS_RANK = {
        Status.DRAFT: 0,
        Status.SUBMITTED: 1,
        Status.LATE: 1,
        Status.MISSING: 1,
        Status.GRADED: 2,
    }

    assessment = models.ForeignKey(
        Assessment,
        on_delete=models.CASCADE,
        related_name="submissions",
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="submissions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="assessment_submissions",
    )
    text = models.TextField(blank=True)
    files = models.JSONField(default=list, blank=True)
    answers = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    score = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    feedback = models.TextField(blank=True)
    certificate_eligible = models.BooleanField(default=False)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="graded_submissions",
    )
    attempt_number = models.PositiveIntegerField(default=1)
    started_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    time_spent = models.DurationField(null=True, blank=True)

    class Meta:
        ordering = ("assessment", "user")
        unique_together = ("assessment", "user")
        indexes = [
            models.Index(fields=["user", "course", "status"], name="assess_sub_user_course_idx"),
            models.Index(fields=["assessment", "status"], name="assess_sub_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user} - {self.assessment.title} ({self.status})"

    def can_transition_to(self, status: str) -> bool:
        return self.STATUS_RANK[status] >= self.STATUS_RANK[self.status]

    def transition_to(self, status: str) -> None:
        if not self.can_transition_to(status):
            raise ValidationError(
                f"Submission status cannot move from {self.status} to {status}."
            )
        self.status = status

    @property
    def deadline(self) -> datetime | None:
        """Timed-session deadline when a session is running, else the due date."""
        time_limit = self.assessment.time_limit
        if time_limit and self.started_at:
            return self.started_at + time_limit
        return self.assessment.due_date

    @property
    def has_open_session(self) -> bool:
        """A timed attempt has been started and not written yet.

        Covers the first attempt (still ``draft``) and retakes of a
        ``submitted``/``late``/``missing`` row, where the status keeps its
        rank until the new attempt is written.
        """
        if not self.assessment.time_limit or self.started_at is None:
            return False
        if self.status == self.Status.DRAFT:
            return True
        if self.status == self.Status.GRADED:
            return False
        return self.submitted_at is None or self.started_at > self.submitted_at

    @property
    def is_submitted(self) -> bool:
        return self.status != self.Status.DRAFT
