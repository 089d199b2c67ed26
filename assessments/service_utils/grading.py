"""Admin-side grading of submissions and certificate eligibility."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import transaction
from django.utils import timezone
from rest_framework import exceptions

from assessments.models import Assessment, Submission
from certificates.models import Certificate
from certificates.services import check_and_award_certificate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreEvaluation:
    score: Decimal
    is_passing: bool
    certificate_toggle_enabled: bool


def _clamp_score(value: Decimal, total_points: int) -> Decimal:
    if value < 0:
        return Decimal("0")
    if value > total_points:
        return Decimal(total_points)
    return value


def evaluate_score(assessment: Assessment, score) -> ScoreEvaluation:
    """Clamp ``score`` into ``[0, total_points]`` and derive pass/fail.

    The certificate toggle is only enabled for passing scores.
    """

    try:
        value = Decimal(str(score))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise exceptions.ValidationError({"score": "Score must be a number"}) from exc
    if not value.is_finite():
        raise exceptions.ValidationError({"score": "Score must be a number"})

    value = _clamp_score(value, assessment.total_points).quantize(Decimal("0.01"))
    is_passing = value >= assessment.passing_score
    return ScoreEvaluation(
        score=value,
        is_passing=is_passing,
        certificate_toggle_enabled=is_passing,
    )


@dataclass
class GradingResult:
    submission: Submission
    evaluation: ScoreEvaluation
    certificate: Optional[Certificate] = None


@transaction.atomic
def grade_submission(
    grader,
    submission_id: int,
    *,
    score,
    feedback: str = "",
    certificate_eligible: bool = False,
    now: datetime | None = None,
) -> GradingResult:
    if not getattr(grader, "is_staff", False):
        raise exceptions.PermissionDenied("Only administrators can grade submissions")

    try:
        submission = (
            Submission.objects.select_for_update()
            .select_related("assessment", "course", "user")
            .get(pk=submission_id)
        )
    except Submission.DoesNotExist as exc:
        raise exceptions.NotFound("Submission not found") from exc

    if submission.status == Submission.Status.DRAFT:
        raise exceptions.ValidationError("Draft submissions cannot be graded")
    if submission.has_open_session:
        raise exceptions.ValidationError("A timed retake of this submission is in progress")

    evaluation = evaluate_score(submission.assessment, score)
    if certificate_eligible and not evaluation.certificate_toggle_enabled:
        raise exceptions.ValidationError(
            {"certificate_eligible": "Score is below the passing score"}
        )

    submission.transition_to(Submission.Status.GRADED)
    submission.score = evaluation.score
    submission.feedback = feedback or ""
    submission.certificate_eligible = bool(certificate_eligible)
    submission.graded_at = now or timezone.now()
    submission.graded_by = grader
    submission.save()

    logger.info(
        "Submission graded",
        extra={
            "submission_id": submission.id,
            "assessment_id": submission.assessment_id,
            "score": str(evaluation.score),
            "is_passing": evaluation.is_passing,
            "grader_id": grader.pk,
        },
    )

    certificate = None
    if submission.certificate_eligible:
        certificate = check_and_award_certificate(submission.user, submission.course)
    return GradingResult(submission=submission, evaluation=evaluation, certificate=certificate)
