import json
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import exceptions

from assessments.models import Submission
from assessments.service_utils.grading import evaluate_score, grade_submission
from certificates.models import Certificate
from courses.models import CourseEnrollment

from . import factories


class EvaluateScoreTests(TestCase):
    def setUp(self):
        self.assessment = factories.create_assessment(total_points=100, passing_score=70)

    def test_toggle_enabled_iff_score_reaches_passing(self):
        for score in range(0, 101):
            with self.subTest(score=score):
                evaluation = evaluate_score(self.assessment, score)
                self.assertEqual(evaluation.is_passing, score >= 70)
                self.assertEqual(evaluation.certificate_toggle_enabled, score >= 70)

    def test_examples(self):
        self.assertFalse(evaluate_score(self.assessment, 65).certificate_toggle_enabled)
        self.assertTrue(evaluate_score(self.assessment, 75).certificate_toggle_enabled)

    def test_score_is_clamped(self):
        self.assertEqual(evaluate_score(self.assessment, 150).score, Decimal("100.00"))
        self.assertEqual(evaluate_score(self.assessment, -5).score, Decimal("0.00"))
        self.assertEqual(evaluate_score(self.assessment, "72.5").score, Decimal("72.50"))

    def test_non_numeric_score_is_rejected(self):
        with self.assertRaises(exceptions.ValidationError):
            evaluate_score(self.assessment, "abc")


class GradeSubmissionTests(TestCase):
    def setUp(self):
        self.grader = factories.create_user("grader", is_staff=True)
        self.student = factories.create_user("learner", first_name="Ada", last_name="Lovelace")
        self.course = factories.create_course()
        factories.enroll(self.student, self.course)
        self.first = factories.create_assessment(course=self.course, passing_score=70)
        self.second = factories.create_assessment(
            course=self.course, kind="activity", passing_score=50
        )
        factories.create_assessment(course=self.course, is_published=False)

    def test_grading_marks_submission_graded(self):
        submission = factories.create_submission(assessment=self.first, user=self.student)

        result = grade_submission(
            self.grader, submission.id, score=150, feedback="Great *work*"
        )

        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.GRADED)
        self.assertEqual(submission.score, Decimal("100.00"))
        self.assertEqual(submission.graded_by, self.grader)
        self.assertIsNotNone(submission.graded_at)
        self.assertTrue(result.evaluation.is_passing)
        self.assertIsNone(result.certificate)

    def test_draft_cannot_be_graded(self):
        draft = factories.create_submission(
            assessment=self.first, user=self.student, status=Submission.Status.DRAFT
        )
        with self.assertRaises(exceptions.ValidationError):
            grade_submission(self.grader, draft.id, score=90)

    def test_toggle_rejected_for_failing_score(self):
        submission = factories.create_submission(assessment=self.first, user=self.student)
        with self.assertRaises(exceptions.ValidationError):
            grade_submission(self.grader, submission.id, score=65, certificate_eligible=True)
        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.SUBMITTED)

    def test_only_staff_can_grade(self):
        submission = factories.create_submission(assessment=self.first, user=self.student)
        with self.assertRaises(exceptions.PermissionDenied):
            grade_submission(self.student, submission.id, score=90)

    def test_certificate_issued_when_all_published_assessments_pass(self):
        first = factories.create_submission(assessment=self.first, user=self.student)
        second = factories.create_submission(assessment=self.second, user=self.student)

        result = grade_submission(self.grader, first.id, score=80, certificate_eligible=True)
        self.assertIsNone(result.certificate)
        self.assertFalse(Certificate.objects.exists())

        result = grade_submission(self.grader, second.id, score=60, certificate_eligible=True)
        certificate = result.certificate
        self.assertIsNotNone(certificate)
        self.assertEqual(certificate.student_name, "Ada Lovelace")
        self.assertTrue(certificate.verification_code.startswith("CERT-"))
        self.assertEqual(len(certificate.verification_code), len("CERT-") + 8)
        enrollment = CourseEnrollment.objects.get(course=self.course, student=self.student)
        self.assertEqual(enrollment.status, CourseEnrollment.Status.COMPLETED)

        # Re-grading keeps the course fully passed but never issues a second certificate.
        again = grade_submission(self.grader, second.id, score=90, certificate_eligible=True)
        self.assertEqual(again.certificate.pk, certificate.pk)
        self.assertEqual(Certificate.objects.filter(user=self.student).count(), 1)

    def test_graded_failing_assessment_counts_towards_completion(self):
        first = factories.create_submission(assessment=self.first, user=self.student)
        second = factories.create_submission(assessment=self.second, user=self.student)

        failing = grade_submission(self.grader, first.id, score=40)
        self.assertFalse(failing.evaluation.is_passing)
        self.assertIsNone(failing.certificate)

        result = grade_submission(self.grader, second.id, score=90, certificate_eligible=True)

        self.assertIsNotNone(result.certificate)
        self.assertEqual(result.certificate.metadata["assessments_passed"], 1)

    def test_grading_waits_for_running_retake(self):
        quiz = factories.create_assessment(course=self.course, kind="quiz", time_limit_minutes=10)
        submission = factories.create_submission(
            assessment=quiz,
            user=self.student,
            submitted_at=timezone.now() - timedelta(minutes=5),
            started_at=timezone.now() - timedelta(minutes=1),
        )
        with self.assertRaises(exceptions.ValidationError):
            grade_submission(self.grader, submission.id, score=90)


class AdminGradingApiTests(TestCase):
    def setUp(self):
        self.admin = factories.create_user("admin", is_staff=True)
        self.student = factories.create_user("student")
        self.assessment = factories.create_assessment(total_points=100, passing_score=70)
        self.submission = factories.create_submission(
            assessment=self.assessment, user=self.student, text="answer"
        )

    def test_grade_endpoint(self):
        self.client.force_login(self.admin)

        resp = self.client.post(
            f"/api/admin/submissions/{self.submission.id}/grade/",
            data=json.dumps({"score": 75, "feedback": "**Good**", "certificate_eligible": True}),
            content_type="application/json",
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["is_passing"])
        self.assertEqual(body["submission"]["status"], "graded")
        self.assertEqual(body["submission"]["user"]["username"], "student")
        self.assertIn("<strong>Good</strong>", body["submission"]["feedback_html"])
        self.assertIsNotNone(body["certificate"])

    def test_score_preview_endpoint(self):
        self.client.force_login(self.admin)
        resp = self.client.get(
            f"/api/admin/assessments/{self.assessment.id}/score-preview/", {"score": 65}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["certificate_toggle_enabled"])

    def test_submission_list_for_admin(self):
        self.client.force_login(self.admin)
        resp = self.client.get(
            f"/api/admin/assessments/{self.assessment.id}/submissions/", {"status": "submitted"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([item["id"] for item in resp.json()], [self.submission.id])

    def test_students_cannot_grade(self):
        self.client.force_login(self.student)
        resp = self.client.post(
            f"/api/admin/submissions/{self.submission.id}/grade/",
            data=json.dumps({"score": 100}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 403)
