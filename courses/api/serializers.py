from rest_framework import serializers

from ..models import Course, CourseEnrollment


class CourseSerializer(serializers.ModelSerializer):
    is_free = serializers.BooleanField(read_only=True)

    class Meta:
        model = Course
        fields = [
            "id",
            "slug",
            "title",
            "subtitle",
            "short_description",
            "full_description",
            "cover_image",
            "category",
            "level",
            "language",
            "duration_weeks",
            "price",
            "is_free",
            "instructor_name",
            "enrollment_open",
            "published_at",
        ]
        read_only_fields = fields


class CourseEnrollmentSerializer(serializers.ModelSerializer):
    course = CourseSerializer(read_only=True)

    class Meta:
        model = CourseEnrollment
        fields = [
            "id",
            "course",
            "status",
            "enrolled_at",
            "started_at",
            "completed_at",
            "progress",
        ]
        read_only_fields = fields
