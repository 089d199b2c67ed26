import json
from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from assessments.models import Submission
from assessments.service_utils.submissions import close_expired_sessions

from . import factories


class AssignmentSubmissionApiTests(TestCase):
    def setUp(self):
        self.user = factories.create_user("student")
        self.client.force_login(self.user)
        self.course = factories.create_course(slug="python-basics")
        factories.enroll(self.user, self.course)
        self.assignment = factories.create_assessment(
            course=self.course,
            due_date=timezone.now() + timedelta(days=2),
            attempts_allowed=2,
            instructions="**Read** chapter 1",
        )

    def _post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_full_assignment_flow(self):
        list_resp = self.client.get("/api/courses/python-basics/assessments/")
        self.assertEqual(list_resp.status_code, 200)
        self.assertEqual([item["id"] for item in list_resp.json()], [self.assignment.id])

        detail_resp = self.client.get(f"/api/assessments/{self.assignment.id}/")
        self.assertEqual(detail_resp.status_code, 200)
        payload = detail_resp.json()
        self.assertIsNone(payload["submission"])
        self.assertTrue(payload["availability"]["allowed"])
        self.assertEqual(payload["attempts_left"], 2)
        self.assertIn("<strong>Read</strong>", payload["assessment"]["instructions_html"])

        draft_resp = self._post(
            f"/api/assessments/{self.assignment.id}/draft/",
            {"text": "work in progress"},
        )
        self.assertEqual(draft_resp.status_code, 200)
        self.assertEqual(draft_resp.json()["status"], "draft")
        submission = Submission.objects.get(assessment=self.assignment, user=self.user)
        self.assertEqual(submission.text, "work in progress")

        submit_resp = self._post(
            f"/api/assessments/{self.assignment.id}/submit/",
            {
                "text": "final answer",
                "files": [
                    {"id": "f1", "name": "report.pdf", "url": "/media/report.pdf"},
                ],
            },
        )
        self.assertEqual(submit_resp.status_code, 200)
        body = submit_resp.json()
        self.assertEqual(body["status"], "submitted")
        self.assertEqual(body["attempt_number"], 1)
        self.assertEqual(body["files"][0]["type"], "document")
        self.assertIsNotNone(body["submitted_at"])

        draft_again = self._post(
            f"/api/assessments/{self.assignment.id}/draft/", {"text": "edit"}
        )
        self.assertEqual(draft_again.status_code, 400)

        resubmit = self._post(
            f"/api/assessments/{self.assignment.id}/submit/", {"text": "second try"}
        )
        self.assertEqual(resubmit.status_code, 200)
        self.assertEqual(resubmit.json()["attempt_number"], 2)

        exhausted = self._post(
            f"/api/assessments/{self.assignment.id}/submit/", {"text": "third try"}
        )
        self.assertEqual(exhausted.status_code, 400)

        self.assertEqual(
            Submission.objects.filter(assessment=self.assignment, user=self.user).count(), 1
        )

        mine = self.client.get("/api/submissions/mine/?course=python-basics")
        self.assertEqual(mine.status_code, 200)
        self.assertEqual(mine.json()[0]["text"], "second try")

    def test_submit_after_due_date_is_late(self):
        self.assignment.due_date = timezone.now() - timedelta(hours=1)
        self.assignment.save(update_fields=["due_date"])

        resp = self._post(f"/api/assessments/{self.assignment.id}/submit/", {"text": "sorry"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "late")

    def test_empty_manual_submit_is_rejected(self):
        resp = self._post(f"/api/assessments/{self.assignment.id}/submit/", {"text": "  "})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Submission.objects.filter(user=self.user).exclude(status="draft").exists())

    def test_graded_submission_cannot_be_resubmitted(self):
        factories.create_submission(
            assessment=self.assignment,
            user=self.user,
            status=Submission.Status.GRADED,
            score=80,
        )
        resp = self._post(f"/api/assessments/{self.assignment.id}/submit/", {"text": "again"})
        self.assertEqual(resp.status_code, 400)

    def test_window_gate_blocks_with_reason(self):
        self.assignment.available_until = timezone.now() - timedelta(minutes=5)
        self.assignment.save(update_fields=["available_until"])

        detail = self.client.get(f"/api/assessments/{self.assignment.id}/")
        self.assertEqual(detail.status_code, 403)
        self.assertEqual(detail.json()["detail"], "window closed")

        submit = self._post(f"/api/assessments/{self.assignment.id}/submit/", {"text": "x"})
        self.assertEqual(submit.status_code, 403)

        self.assignment.available_from = timezone.now() + timedelta(days=1)
        self.assignment.available_until = timezone.now() + timedelta(days=2)
        self.assignment.save(update_fields=["available_from", "available_until"])
        detail = self.client.get(f"/api/assessments/{self.assignment.id}/")
        self.assertEqual(detail.status_code, 403)
        self.assertEqual(detail.json()["detail"], "not yet available")

    def test_unpublished_assessment_is_not_found(self):
        hidden = factories.create_assessment(course=self.course, is_published=False)
        resp = self.client.get(f"/api/assessments/{hidden.id}/")
        self.assertEqual(resp.status_code, 404)

    def test_requires_authentication(self):
        self.client.logout()
        resp = self.client.get(f"/api/assessments/{self.assignment.id}/")
        self.assertEqual(resp.status_code, 403)


class TimedQuizFlowTests(TestCase):
    def setUp(self):
        self.user = factories.create_user("quiz-taker")
        self.client.force_login(self.user)
        self.quiz = factories.create_assessment(
            kind="quiz", time_limit_minutes=10, total_points=3, passing_score=2
        )
        self.q1 = factories.add_question(self.quiz, order=1, correct_option_index=1, points=2)
        self.q2 = factories.add_question(
            self.quiz,
            order=2,
            question_type="true_false",
            correct_option_index=0,
        )
        self.q3 = factories.add_question(self.quiz, order=3, question_type="essay")

    def _post(self, url, payload=None):
        return self.client.post(
            url, data=json.dumps(payload or {}), content_type="application/json"
        )

    def test_session_start_is_stamped_once(self):
        first = self._post(f"/api/assessments/{self.quiz.id}/start/")
        self.assertEqual(first.status_code, 201)
        started_at = Submission.objects.get(assessment=self.quiz, user=self.user).started_at
        self.assertIsNotNone(first.json()["countdown"])
        self.assertEqual(first.json()["status"], "draft")

        second = self._post(f"/api/assessments/{self.quiz.id}/start/")
        self.assertEqual(second.status_code, 201)
        self.assertEqual(
            Submission.objects.get(assessment=self.quiz, user=self.user).started_at, started_at
        )

        detail = self.client.get(f"/api/assessments/{self.quiz.id}/")
        questions = detail.json()["assessment"]["questions"]
        self.assertEqual(len(questions), 3)
        self.assertNotIn("correct_option_index", questions[0])

    def test_submit_in_time_checks_objective_answers(self):
        self._post(f"/api/assessments/{self.quiz.id}/start/")

        resp = self._post(
            f"/api/assessments/{self.quiz.id}/submit/",
            {
                "answers": [
                    {"question_id": self.q1.id, "answer": 1},
                    {"question_id": self.q2.id, "answer": "False"},
                    {"question_id": self.q3.id, "answer": "Because."},
                ]
            },
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "submitted")
        submission = Submission.objects.get(assessment=self.quiz, user=self.user)
        answers = {item["question_id"]: item for item in submission.answers}
        self.assertTrue(answers[self.q1.id]["is_correct"])
        self.assertEqual(answers[self.q1.id]["points_awarded"], 2)
        self.assertFalse(answers[self.q2.id]["is_correct"])
        self.assertEqual(answers[self.q2.id]["points_awarded"], 0)
        self.assertIsNone(answers[self.q3.id]["is_correct"])
        self.assertLessEqual(submission.time_spent, self.quiz.time_limit)
        # Correctness stays hidden from the learner until grading.
        self.assertNotIn("is_correct", resp.json()["answers"][0])

    def test_auto_submit_after_expiry_is_late(self):
        self._post(f"/api/assessments/{self.quiz.id}/start/")
        self._post(
            f"/api/assessments/{self.quiz.id}/draft/",
            {"answers": {str(self.q1.id): 1}},
        )
        submission = Submission.objects.get(assessment=self.quiz, user=self.user)

        with mock.patch("assessments.service_utils.submissions.timezone.now") as mocked_now:
            mocked_now.return_value = (
                submission.started_at + self.quiz.time_limit + timedelta(seconds=5)
            )
            late_draft = self._post(
                f"/api/assessments/{self.quiz.id}/draft/",
                {"answers": {str(self.q1.id): 2}},
            )
            self.assertEqual(late_draft.status_code, 400)

            resp = self._post(
                f"/api/assessments/{self.quiz.id}/submit/",
                {"answers": {str(self.q1.id): 1}, "auto": True},
            )

        self.assertEqual(resp.status_code, 200)
        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.LATE)
        self.assertEqual(submission.time_spent, self.quiz.time_limit)

    def test_answers_for_unknown_questions_are_rejected(self):
        other_quiz = factories.create_assessment(kind="quiz")
        foreign = factories.add_question(other_quiz, order=1)
        resp = self._post(
            f"/api/assessments/{self.quiz.id}/submit/",
            {"answers": [{"question_id": foreign.id, "answer": 0}]},
        )
        self.assertEqual(resp.status_code, 400)

    def test_show_correct_answers_reveals_key_after_submission(self):
        self.quiz.show_correct_answers = True
        self.quiz.save(update_fields=["show_correct_answers"])
        self._post(
            f"/api/assessments/{self.quiz.id}/submit/",
            {"answers": [{"question_id": self.q1.id, "answer": 0}]},
        )

        detail = self.client.get(f"/api/assessments/{self.quiz.id}/")

        questions = {item["id"]: item for item in detail.json()["assessment"]["questions"]}
        self.assertEqual(questions[self.q1.id]["correct_option_index"], 1)
        self.assertFalse(detail.json()["submission"]["answers"][0]["is_correct"])

    def test_timed_retake_can_save_drafts_and_is_closed_on_expiry(self):
        first_start = timezone.now()
        with mock.patch("assessments.service_utils.submissions.timezone.now") as mocked_now:
            mocked_now.return_value = first_start
            self._post(f"/api/assessments/{self.quiz.id}/start/")
            first = self._post(
                f"/api/assessments/{self.quiz.id}/submit/",
                {"answers": {str(self.q1.id): 0}},
            )
            self.assertEqual(first.json()["status"], "submitted")

            retake_start = first_start + timedelta(minutes=1)
            mocked_now.return_value = retake_start
            retake = self._post(f"/api/assessments/{self.quiz.id}/start/")
            self.assertEqual(retake.status_code, 201)
            self.assertIsNotNone(retake.json()["countdown"])

            draft = self._post(
                f"/api/assessments/{self.quiz.id}/draft/",
                {"answers": {str(self.q1.id): 1}},
            )
            self.assertEqual(draft.status_code, 200)

            resumed = self._post(f"/api/assessments/{self.quiz.id}/start/")
            self.assertEqual(resumed.status_code, 201)
            submission = Submission.objects.get(assessment=self.quiz, user=self.user)
            self.assertEqual(submission.started_at, retake_start)

            mocked_now.return_value = retake_start + self.quiz.time_limit + timedelta(seconds=1)
            closed = close_expired_sessions()

        self.assertEqual([item.pk for item in closed], [submission.pk])
        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.LATE)
        self.assertEqual(submission.attempt_number, 2)
        self.assertEqual(submission.time_spent, self.quiz.time_limit)
        self.assertTrue(submission.answers[0]["is_correct"])
        self.assertFalse(submission.has_open_session)
