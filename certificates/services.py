"""Certificate issuance, PDF generation and lookup."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework import exceptions, status

from assessments.models import Assessment, Submission
from courses import services as course_services
from courses.models import Course

from .models import Certificate
from .rendering import render_certificate_pdf

logger = logging.getLogger(__name__)


class CertificateGenerationFailed(exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to generate certificate"
    default_code = "internal"


@dataclass
class EligibilityReport:
    """Completion status of ``course`` for one student.

    A certificate is due once every published assessment has a graded
    submission. Passing figures are reported alongside for display.
    """

    course: Course
    published_count: int
    graded_count: int
    passed_count: int
    completed: dict[str, list[int]] = field(default_factory=dict)
    total_score: Decimal = Decimal("0")
    total_possible: int = 0
    certificate: Optional[Certificate] = None

    @property
    def eligible(self) -> bool:
        return self.published_count > 0 and self.graded_count >= self.published_count

    @property
    def remaining_count(self) -> int:
        return max(0, self.published_count - self.graded_count)


def _graded_submissions(user, course: Course) -> QuerySet[Submission]:
    return Submission.objects.filter(
        user=user,
        course=course,
        assessment__is_published=True,
        status=Submission.Status.GRADED,
    ).select_related("assessment")


def check_eligibility(user, course: Course) -> EligibilityReport:
    """Summarise how far ``user`` is from completing every published assessment."""

    published = list(Assessment.objects.filter(course=course, is_published=True))
    graded = list(_graded_submissions(user, course))

    completed: dict[str, list[int]] = {kind: [] for kind in Assessment.Kind.values}
    total_score = Decimal("0")
    passed_count = 0
    for submission in graded:
        completed[submission.assessment.kind].append(submission.assessment_id)
        score = submission.score or Decimal("0")
        total_score += score
        if score >= submission.assessment.passing_score:
            passed_count += 1

    return EligibilityReport(
        course=course,
        published_count=len(published),
        graded_count=len(graded),
        passed_count=passed_count,
        completed=completed,
        total_score=total_score,
        total_possible=sum(assessment.total_points for assessment in published),
        certificate=Certificate.objects.filter(user=user, course=course).first(),
    )


def _display_name(user) -> str:
    full_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return full_name or user.get_username()


@transaction.atomic
def check_and_award_certificate(user, course: Course, *, now: datetime | None = None) -> Certificate | None:
    """Issue the course certificate once every published assessment is passed.

    Returns the existing certificate when one was already issued, and ``None``
    while the student is not yet eligible.
    """

    report = check_eligibility(user, course)
    if report.certificate is not None:
        return report.certificate
    if not report.eligible:
        return None

    now = now or timezone.now()
    expires_at = None
    if settings.CERTIFICATE_VALIDITY_DAYS:
        expires_at = now + timedelta(days=settings.CERTIFICATE_VALIDITY_DAYS)

    certificate, created = Certificate.objects.get_or_create(
        user=user,
        course=course,
        defaults={
            "student_name": _display_name(user),
            "course_name": course.title,
            "issued_at": now,
            "expires_at": expires_at,
            "metadata": {
                "total_score": str(report.total_score),
                "total_possible": report.total_possible,
                "assessments_completed": report.graded_count,
                "assessments_passed": report.passed_count,
                "completion_date": now.date().isoformat(),
                "instructor_name": course.instructor_name,
            },
        },
    )
    if created:
        course_services.mark_completed(user, course)
        logger.info(
            "Certificate issued",
            extra={
                "certificate_id": str(certificate.id),
                "user_id": user.pk,
                "course_id": course.id,
            },
        )
    return certificate


def generate_certificate(user, course_id) -> dict:
    """Render and store the PDF for the caller's certificate and return its URL."""

    if user is None or not user.is_authenticated:
        raise exceptions.NotAuthenticated("You must be logged in to generate a certificate.")

    try:
        course = Course.objects.get(pk=course_id)
    except (Course.DoesNotExist, TypeError, ValueError) as exc:
        raise exceptions.NotFound("Course not found") from exc

    certificate = (
        Certificate.objects.select_related("user", "course")
        .filter(user=user, course=course)
        .first()
    )
    if certificate is None:
        raise exceptions.NotFound("No certificate has been issued for this course")

    try:
        pdf_bytes = render_certificate_pdf(certificate)
        if default_storage.exists(certificate.pdf_path):
            default_storage.delete(certificate.pdf_path)
        saved_name = default_storage.save(certificate.pdf_path, ContentFile(pdf_bytes))
        url = default_storage.url(saved_name)
    except Exception as exc:
        logger.exception(
            "Certificate generation failed",
            extra={"certificate_id": str(certificate.id), "course_id": course.id},
        )
        raise CertificateGenerationFailed() from exc

    certificate.pdf_url = url
    certificate.pdf_generated_at = timezone.now()
    certificate.save(update_fields=["pdf_url", "pdf_generated_at"])
    logger.info(
        "Certificate PDF generated",
        extra={"certificate_id": str(certificate.id), "path": saved_name},
    )
    return {"url": url}


def lookup_certificate(certificate_id) -> Certificate | None:
    try:
        key = uuid.UUID(str(certificate_id))
    except ValueError:
        return None
    return Certificate.objects.select_related("course", "user").filter(pk=key).first()


@dataclass
class CertificateVerification:
    is_valid: bool
    certificate: Optional[Certificate]
    verified_at: datetime


def verify_certificate(code: str, *, now: datetime | None = None) -> CertificateVerification:
    now = now or timezone.now()
    certificate = (
        Certificate.objects.select_related("course", "user")
        .filter(verification_code=(code or "").strip().upper())
        .first()
    )
    is_valid = certificate is not None and not certificate.is_expired(now)
    return CertificateVerification(is_valid=is_valid, certificate=certificate, verified_at=now)


def list_user_certificates(user) -> QuerySet[Certificate]:
    return Certificate.objects.filter(user=user).select_related("course").order_by("-issued_at")
