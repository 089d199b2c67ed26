from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from assessments.models import Assessment
from assessments.tests import factories
from courses.models import Course, CourseEnrollment


class CourseCatalogApiTests(TestCase):
    def setUp(self):
        self.older = factories.create_course(slug="intro", category="programming")
        self.older.published_at = timezone.now() - timedelta(days=3)
        self.older.save(update_fields=["published_at"])
        self.newer = factories.create_course(
            slug="advanced-sql", category="data", level="advanced"
        )
        factories.create_course(slug="draft-course", is_published=False)

    def test_catalog_lists_published_courses_newest_first(self):
        resp = self.client.get("/api/courses/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([item["slug"] for item in resp.json()], ["advanced-sql", "intro"])

    def test_catalog_filters(self):
        resp = self.client.get("/api/courses/", {"category": "programming"})
        self.assertEqual([item["slug"] for item in resp.json()], ["intro"])

        resp = self.client.get("/api/courses/", {"level": "advanced"})
        self.assertEqual([item["slug"] for item in resp.json()], ["advanced-sql"])

    def test_unpublished_course_is_not_found(self):
        self.assertEqual(self.client.get("/api/courses/draft-course/").status_code, 404)
        self.assertEqual(self.client.get("/api/courses/intro/").json()["slug"], "intro")


class CourseEnrollmentApiTests(TestCase):
    def setUp(self):
        self.user = factories.create_user("learner")
        self.client.force_login(self.user)
        self.course = factories.create_course(slug="python")

    def test_enroll_once(self):
        resp = self.client.post("/api/courses/python/enroll/")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], CourseEnrollment.Status.ENROLLED)

        duplicate = self.client.post("/api/courses/python/enroll/")
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(CourseEnrollment.objects.filter(student=self.user).count(), 1)

        mine = self.client.get("/api/courses/mine/")
        self.assertEqual([item["course"]["slug"] for item in mine.json()], ["python"])

    def test_closed_enrollment_is_rejected(self):
        self.course.enrollment_open = False
        self.course.save(update_fields=["enrollment_open"])
        resp = self.client.post("/api/courses/python/enroll/")
        self.assertEqual(resp.status_code, 400)

    def test_archived_enrollment_can_be_renewed(self):
        CourseEnrollment.objects.create(
            course=self.course, student=self.user, status=CourseEnrollment.Status.ARCHIVED
        )
        resp = self.client.post("/api/courses/python/enroll/")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], CourseEnrollment.Status.ENROLLED)

    def test_enroll_requires_login(self):
        self.client.logout()
        self.assertEqual(self.client.post("/api/courses/python/enroll/").status_code, 403)


class SeedDemoCourseCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        for _ in range(2):
            call_command("seed_demo_course", "--username", "demo", stdout=StringIO())

        course = Course.objects.get(slug="demo-python")
        self.assertTrue(course.is_published)
        self.assertEqual(
            sorted(course.assessments.values_list("kind", flat=True)),
            ["activity", "assignment", "quiz"],
        )
        quiz = course.assessments.get(kind=Assessment.Kind.QUIZ)
        self.assertEqual(quiz.questions.count(), 3)
        self.assertEqual(CourseEnrollment.objects.filter(course=course).count(), 1)
