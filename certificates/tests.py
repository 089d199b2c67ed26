import json
import shutil
import tempfile
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from assessments.models import Submission
from assessments.tests import factories
from courses.models import CourseEnrollment

from . import services
from .models import Certificate


def _pass_all(user, course):
    for assessment in course.assessments.filter(is_published=True):
        factories.create_submission(
            assessment=assessment,
            user=user,
            status=Submission.Status.GRADED,
            score=Decimal(assessment.total_points),
            graded_at=timezone.now(),
        )


class EligibilityTests(TestCase):
    def setUp(self):
        self.user = factories.create_user("grad", first_name="Grace", last_name="Hopper")
        self.course = factories.create_course(title="Compilers", instructor_name="Dr. Knuth")
        factories.enroll(self.user, self.course)
        self.assignment = factories.create_assessment(course=self.course, passing_score=60)
        self.quiz = factories.create_assessment(
            course=self.course, kind="quiz", total_points=10, passing_score=5
        )

    def test_course_without_published_assessments_is_not_eligible(self):
        empty = factories.create_course()
        report = services.check_eligibility(self.user, empty)
        self.assertFalse(report.eligible)
        self.assertIsNone(services.check_and_award_certificate(self.user, empty))

    def test_partial_progress_is_reported(self):
        factories.create_submission(
            assessment=self.assignment,
            user=self.user,
            status=Submission.Status.GRADED,
            score=Decimal("75"),
        )
        factories.create_submission(assessment=self.quiz, user=self.user)

        report = services.check_eligibility(self.user, self.course)

        self.assertEqual(report.published_count, 2)
        self.assertEqual(report.graded_count, 1)
        self.assertEqual(report.passed_count, 1)
        self.assertEqual(report.remaining_count, 1)
        self.assertEqual(report.completed["assignment"], [self.assignment.id])
        self.assertFalse(report.eligible)
        self.assertIsNone(services.check_and_award_certificate(self.user, self.course))

    def test_graded_but_failing_assessment_still_completes_course(self):
        factories.create_submission(
            assessment=self.assignment,
            user=self.user,
            status=Submission.Status.GRADED,
            score=Decimal("75"),
        )
        factories.create_submission(
            assessment=self.quiz,
            user=self.user,
            status=Submission.Status.GRADED,
            score=Decimal("3"),
        )

        report = services.check_eligibility(self.user, self.course)

        self.assertEqual(report.graded_count, 2)
        self.assertEqual(report.passed_count, 1)
        self.assertTrue(report.eligible)
        certificate = services.check_and_award_certificate(self.user, self.course)
        self.assertIsNotNone(certificate)
        self.assertEqual(certificate.metadata["assessments_completed"], 2)
        self.assertEqual(certificate.metadata["assessments_passed"], 1)
        self.assertEqual(certificate.metadata["total_score"], "78.00")

    def test_award_is_idempotent(self):
        _pass_all(self.user, self.course)

        first = services.check_and_award_certificate(self.user, self.course)
        second = services.check_and_award_certificate(self.user, self.course)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Certificate.objects.count(), 1)
        self.assertEqual(first.student_name, "Grace Hopper")
        self.assertEqual(first.course_name, "Compilers")
        self.assertEqual(first.metadata["assessments_completed"], 2)
        self.assertEqual(first.metadata["total_possible"], 110)
        self.assertEqual(first.metadata["instructor_name"], "Dr. Knuth")
        self.assertIsNone(first.expires_at)
        enrollment = CourseEnrollment.objects.get(course=self.course, student=self.user)
        self.assertEqual(enrollment.status, CourseEnrollment.Status.COMPLETED)

    @override_settings(CERTIFICATE_VALIDITY_DAYS=30)
    def test_validity_period_sets_expiry(self):
        _pass_all(self.user, self.course)
        now = timezone.now()

        certificate = services.check_and_award_certificate(self.user, self.course, now=now)

        self.assertEqual(certificate.expires_at, now + timedelta(days=30))
        self.assertTrue(certificate.is_expired(now + timedelta(days=31)))


class GenerateCertificateApiTests(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.user = factories.create_user("grad")
        self.client.force_login(self.user)
        self.course = factories.create_course()
        factories.create_assessment(course=self.course, passing_score=50)
        _pass_all(self.user, self.course)
        self.certificate = services.check_and_award_certificate(self.user, self.course)

    def _generate(self, course_id):
        return self.client.post(
            "/api/certificates/generate/",
            data=json.dumps({"course_id": course_id}),
            content_type="application/json",
        )

    def test_generates_pdf_and_stores_url(self):
        with override_settings(MEDIA_ROOT=self.media_root, MEDIA_URL="/media/"):
            resp = self._generate(self.course.id)
            # Regenerating overwrites the stored file at the same path.
            again = self._generate(self.course.id)

        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertTrue(resp.json()["url"].endswith(f"certificates/{self.certificate.id}.pdf"))
        self.assertEqual(again.json()["url"], resp.json()["url"])
        self.certificate.refresh_from_db()
        self.assertEqual(self.certificate.pdf_url, resp.json()["url"])
        self.assertIsNotNone(self.certificate.pdf_generated_at)

    def test_unknown_course(self):
        resp = self._generate(999999)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Course not found")

    def test_course_without_certificate(self):
        other = factories.create_course()
        resp = self._generate(other.id)
        self.assertEqual(resp.status_code, 404)

    def test_render_failure_is_internal_error(self):
        with override_settings(MEDIA_ROOT=self.media_root), mock.patch(
            "certificates.services.render_certificate_pdf",
            side_effect=RuntimeError("boom"),
        ), self.assertLogs("certificates.services", level="ERROR"):
            resp = self._generate(self.course.id)

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Failed to generate certificate")
        self.certificate.refresh_from_db()
        self.assertEqual(self.certificate.pdf_url, "")

    def test_requires_authentication(self):
        self.client.logout()
        resp = self._generate(self.course.id)
        self.assertEqual(resp.status_code, 403)


class CertificateLookupApiTests(TestCase):
    def setUp(self):
        self.user = factories.create_user("grad")
        self.course = factories.create_course(slug="data-101")
        factories.create_assessment(course=self.course, passing_score=50)
        _pass_all(self.user, self.course)
        self.certificate = services.check_and_award_certificate(self.user, self.course)

    def test_lookup_is_public(self):
        resp = self.client.get(f"/api/certificates/{self.certificate.id}/")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["verification_code"], self.certificate.verification_code)
        self.assertEqual(data["course"], "data-101")

    def test_unknown_certificate_returns_null(self):
        resp = self.client.get("/api/certificates/00000000-0000-0000-0000-000000000000/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"data": None})
        self.assertIsNone(services.lookup_certificate("not-a-uuid"))

    def test_verify_by_code(self):
        code = self.certificate.verification_code
        resp = self.client.get(f"/api/certificates/verify/{code.lower()}/")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["is_valid"])
        self.assertEqual(resp.json()["certificate"]["id"], str(self.certificate.id))

        missing = self.client.get("/api/certificates/verify/CERT-00000000/")
        self.assertFalse(missing.json()["is_valid"])
        self.assertIsNone(missing.json()["certificate"])

    def test_expired_certificate_is_invalid(self):
        self.certificate.expires_at = timezone.now() - timedelta(days=1)
        self.certificate.save(update_fields=["expires_at"])

        verification = services.verify_certificate(self.certificate.verification_code)

        self.assertFalse(verification.is_valid)
        self.assertEqual(verification.certificate, self.certificate)

    def test_mine_and_eligibility(self):
        self.client.force_login(self.user)

        mine = self.client.get("/api/certificates/mine/")
        self.assertEqual([item["id"] for item in mine.json()], [str(self.certificate.id)])

        eligibility = self.client.get("/api/courses/data-101/certificate-eligibility/")
        self.assertEqual(eligibility.status_code, 200)
        self.assertTrue(eligibility.json()["eligible"])
        self.assertEqual(eligibility.json()["remaining_count"], 0)
