from __future__ import annotations

import logging
from typing import Mapping

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework import exceptions

from .models import Course, CourseEnrollment

logger = logging.getLogger(__name__)

CATALOG_FILTERS = ("category", "level")


def list_catalog(filters: Mapping[str, str] | None = None) -> QuerySet[Course]:
    """Return published courses, newest first, narrowed by equality filters."""

    queryset = Course.objects.filter(is_published=True)
    for name in CATALOG_FILTERS:
        value = (filters or {}).get(name)
        if value:
            queryset = queryset.filter(**{name: value})
    return queryset.order_by("-published_at", "-created_at")


def get_published_course(slug: str) -> Course:
    try:
        return Course.objects.get(slug=slug, is_published=True)
    except Course.DoesNotExist as exc:
        raise exceptions.NotFound("Course not found") from exc


def get_enrollment(user, course: Course) -> CourseEnrollment | None:
    return CourseEnrollment.objects.filter(course=course, student=user).first()


def is_enrolled(user, course: Course) -> bool:
    return CourseEnrollment.objects.filter(
        course=course,
        student=user,
        status__in=[CourseEnrollment.Status.ENROLLED, CourseEnrollment.Status.COMPLETED],
    ).exists()


@transaction.atomic
def enroll(user, course: Course) -> CourseEnrollment:
    """Enroll ``user`` into ``course``; repeated enrollment is rejected."""

    if not course.enrollment_open:
        raise exceptions.ValidationError("Enrollment for this course is closed")

    enrollment, created = CourseEnrollment.objects.get_or_create(
        course=course,
        student=user,
        defaults={"status": CourseEnrollment.Status.ENROLLED},
    )
    if not created:
        if enrollment.status in (
            CourseEnrollment.Status.ENROLLED,
            CourseEnrollment.Status.COMPLETED,
        ):
            raise exceptions.ValidationError("You are already enrolled in this course")
        enrollment.status = CourseEnrollment.Status.ENROLLED
        enrollment.save(update_fields=["status"])

    logger.info(
        "Student enrolled",
        extra={"course_id": course.id, "user_id": user.id},
    )
    return enrollment


def mark_completed(user, course: Course) -> CourseEnrollment | None:
    enrollment = get_enrollment(user, course)
    if enrollment is None:
        return None
    if enrollment.status != CourseEnrollment.Status.COMPLETED:
        enrollment.status = CourseEnrollment.Status.COMPLETED
        enrollment.completed_at = timezone.now()
        enrollment.progress = 100
        enrollment.save(update_fields=["status", "completed_at", "progress"])
    return enrollment
