from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from courses.models import Course

VERIFICATION_CODE_PREFIX = "CERT"


def generate_verification_code() -> str:
    return f"{VERIFICATION_CODE_PREFIX}-{uuid.uuid4().hex[:8].upper()}"


class Certificate(models.Model):
    """Course completion certificate; issued once per (user, course)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="certificates",
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="certificates",
    )
    student_name = models.CharField(max_length=255, blank=True)
    course_name = models.CharField(max_length=255, blank=True)
    issued_at = models.DateTimeField(default=timezone.now)
    verification_code = models.CharField(
        max_length=20,
        unique=True,
        default=generate_verification_code,
        editable=False,
    )
    pdf_url = models.CharField(max_length=2000, blank=True)
    pdf_generated_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("-issued_at",)
        unique_together = ("user", "course")

    def __str__(self) -> str:
        return f"{self.verification_code} ({self.student_name} - {self.course_name})"

    @property
    def pdf_path(self) -> str:
        return f"certificates/{self.id}.pdf"

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return (now or timezone.now()) >= self.expires_at
