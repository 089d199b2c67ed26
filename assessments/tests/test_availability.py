from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import TestCase

from assessments.service_utils.availability import (
    NOT_YET_AVAILABLE,
    WINDOW_CLOSED,
    check_availability,
)

from . import factories


class AvailabilityGateTests(TestCase):
    def setUp(self):
        self.opens = datetime(2024, 3, 1, 9, 0, tzinfo=dt_timezone.utc)
        self.closes = datetime(2024, 3, 8, 18, 0, tzinfo=dt_timezone.utc)
        self.assessment = factories.create_assessment(
            available_from=self.opens,
            available_until=self.closes,
        )

    def test_before_window_is_not_yet_available(self):
        result = check_availability(self.assessment, self.opens - timedelta(seconds=1))
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason, NOT_YET_AVAILABLE)

    def test_after_window_is_closed(self):
        result = check_availability(self.assessment, self.closes + timedelta(minutes=1))
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason, WINDOW_CLOSED)

    def test_inside_window_is_allowed(self):
        for moment in (self.opens, self.opens + timedelta(days=3), self.closes):
            with self.subTest(moment=moment):
                result = check_availability(self.assessment, moment)
                self.assertTrue(result.allowed)
                self.assertIsNone(result.reason)

    def test_open_ended_window(self):
        assessment = factories.create_assessment(available_from=self.opens)
        self.assertTrue(check_availability(assessment, self.closes + timedelta(days=365)).allowed)
        self.assertFalse(check_availability(assessment, self.opens - timedelta(days=1)).allowed)

    def test_no_window_is_always_allowed(self):
        assessment = factories.create_assessment()
        self.assertTrue(check_availability(assessment).allowed)
