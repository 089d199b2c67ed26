import json

from django.test import TestCase

from assessments.models import Assessment

from . import factories


class AdminAssessmentApiTests(TestCase):
    def setUp(self):
        self.admin = factories.create_user("author", is_staff=True)
        self.client.force_login(self.admin)
        self.course = factories.create_course()

    def _send(self, method, url, payload):
        return getattr(self.client, method)(
            url, data=json.dumps(payload), content_type="application/json"
        )

    def test_create_quiz_with_questions(self):
        resp = self._send(
            "post",
            "/api/admin/assessments/",
            {
                "course": self.course.id,
                "kind": "quiz",
                "title": "Warm-up quiz",
                "total_points": 2,
                "passing_score": 1,
                "time_limit": "00:15:00",
                "submission_type": "quiz",
                "questions": [
                    {
                        "order": 1,
                        "text": "2 + 2?",
                        "question_type": "multiple_choice",
                        "options": ["3", "4"],
                        "correct_option_index": 1,
                    },
                    {
                        "order": 2,
                        "text": "The sky is green",
                        "question_type": "true_false",
                        "correct_option_index": 1,
                    },
                ],
            },
        )

        self.assertEqual(resp.status_code, 201, resp.content)
        quiz = Assessment.objects.get(title="Warm-up quiz")
        self.assertEqual(quiz.created_by, self.admin)
        self.assertFalse(quiz.is_published)
        questions = list(quiz.questions.order_by("order"))
        self.assertEqual(len(questions), 2)
        self.assertEqual(questions[1].options, ["True", "False"])

    def test_invalid_assessment_is_rejected(self):
        resp = self._send(
            "post",
            "/api/admin/assessments/",
            {
                "course": self.course.id,
                "kind": "assignment",
                "title": "Broken",
                "total_points": 10,
                "passing_score": 20,
            },
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("passing_score", resp.json())

    def test_quiz_without_time_limit_is_rejected(self):
        resp = self._send(
            "post",
            "/api/admin/assessments/",
            {"course": self.course.id, "kind": "quiz", "title": "Untimed", "passing_score": 0},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("time_limit", resp.json())

    def test_duplicate_question_order_is_rejected(self):
        resp = self._send(
            "post",
            "/api/admin/assessments/",
            {
                "course": self.course.id,
                "kind": "quiz",
                "title": "Dupes",
                "passing_score": 0,
                "time_limit": "00:10:00",
                "questions": [
                    {"order": 1, "text": "a", "question_type": "essay"},
                    {"order": 1, "text": "b", "question_type": "essay"},
                ],
            },
        )
        self.assertEqual(resp.status_code, 400)

    def test_update_replaces_questions(self):
        quiz = factories.create_assessment(course=self.course, kind="quiz", is_published=False)
        factories.add_question(quiz, order=1)
        factories.add_question(quiz, order=2)

        resp = self._send(
            "patch",
            f"/api/admin/assessments/{quiz.id}/",
            {"questions": [{"order": 1, "text": "Only one", "question_type": "essay"}]},
        )

        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(list(quiz.questions.values_list("text", flat=True)), ["Only one"])

    def test_publish_requires_questions_for_quiz(self):
        quiz = factories.create_assessment(course=self.course, kind="quiz", is_published=False)

        resp = self._send("post", f"/api/admin/assessments/{quiz.id}/publish/", {})
        self.assertEqual(resp.status_code, 400)

        factories.add_question(quiz, order=1)
        resp = self._send("post", f"/api/admin/assessments/{quiz.id}/publish/", {})
        self.assertEqual(resp.status_code, 200)
        quiz.refresh_from_db()
        self.assertTrue(quiz.is_published)

        resp = self._send(
            "post", f"/api/admin/assessments/{quiz.id}/publish/", {"is_published": False}
        )
        self.assertEqual(resp.status_code, 200)
        quiz.refresh_from_db()
        self.assertFalse(quiz.is_published)

    def test_publish_accepts_form_encoded_flag(self):
        assignment = factories.create_assessment(course=self.course, is_published=True)

        resp = self.client.post(
            f"/api/admin/assessments/{assignment.id}/publish/", {"is_published": "false"}
        )

        self.assertEqual(resp.status_code, 200)
        assignment.refresh_from_db()
        self.assertFalse(assignment.is_published)

    def test_list_filters_by_kind(self):
        factories.create_assessment(course=self.course)
        quiz = factories.create_assessment(course=self.course, kind="quiz")

        resp = self.client.get("/api/admin/assessments/", {"course": self.course.id, "kind": "quiz"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual([item["id"] for item in resp.json()], [quiz.id])

    def test_students_are_forbidden(self):
        student = factories.create_user("student")
        self.client.force_login(student)
        resp = self.client.get("/api/admin/assessments/")
        self.assertEqual(resp.status_code, 403)
