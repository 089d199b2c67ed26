import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import exceptions

from assessments.utils.files import get_file_type, validate_upload

from . import factories


class FileTypeTests(SimpleTestCase):
    def test_known_extensions(self):
        self.assertEqual(get_file_type("photo.JPG"), "image")
        self.assertEqual(get_file_type("report.pdf"), "document")
        self.assertEqual(get_file_type("grades.xlsx"), "spreadsheet")
        self.assertEqual(get_file_type("slides.pptx"), "presentation")
        self.assertEqual(get_file_type("bundle.tar.gz"), "archive")
        self.assertEqual(get_file_type("main.py"), "code")

    def test_unknown_extension_is_generic(self):
        self.assertEqual(get_file_type("notes"), "file")
        self.assertEqual(get_file_type("song.mp3"), "file")


class ValidateUploadTests(SimpleTestCase):
    def test_size_limit(self):
        upload = SimpleUploadedFile("big.pdf", b"x" * (1024 * 1024 + 1))
        with self.assertRaises(exceptions.ValidationError) as ctx:
            validate_upload(upload, max_size_mb=1, allowed_extensions=[])
        self.assertIn("Maximum size: 1MB", str(ctx.exception.detail["file"]))

    def test_extension_allow_list(self):
        upload = SimpleUploadedFile("script.exe", b"MZ")
        with self.assertRaises(exceptions.ValidationError):
            validate_upload(upload, max_size_mb=5, allowed_extensions=["pdf", ".DOCX"])
        validate_upload(
            SimpleUploadedFile("essay.docx", b"data"),
            max_size_mb=5,
            allowed_extensions=["pdf", ".DOCX"],
        )


class UploadApiTests(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.user = factories.create_user("uploader")
        self.client.force_login(self.user)

    def test_upload_returns_file_descriptor(self):
        with override_settings(MEDIA_ROOT=self.media_root, MEDIA_URL="/media/"):
            resp = self.client.post(
                "/api/uploads/",
                {"file": SimpleUploadedFile("My Report.pdf", b"%PDF-1.4 test")},
            )

        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["name"], "My Report.pdf")
        self.assertEqual(body["type"], "document")
        self.assertTrue(body["url"].startswith(f"/media/submissions/{self.user.pk}/{body['id']}/"))
        self.assertTrue(body["url"].endswith("My_Report.pdf"))

    @override_settings(SUBMISSION_ALLOWED_EXTENSIONS=["pdf"])
    def test_disallowed_upload_is_rejected(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            resp = self.client.post(
                "/api/uploads/",
                {"file": SimpleUploadedFile("virus.exe", b"MZ")},
            )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("file", resp.json())

    def test_requires_authentication(self):
        self.client.logout()
        resp = self.client.post(
            "/api/uploads/", {"file": SimpleUploadedFile("a.txt", b"a")}
        )
        self.assertEqual(resp.status_code, 403)
