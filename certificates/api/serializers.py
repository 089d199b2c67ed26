from rest_framework import serializers

from ..models import Certificate


class CertificateSerializer(serializers.ModelSerializer):
    course = serializers.SlugRelatedField(slug_field="slug", read_only=True)
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Certificate
        fields = [
            "id",
            "user_id",
            "course",
            "student_name",
            "course_name",
            "issued_at",
            "verification_code",
            "pdf_url",
            "expires_at",
            "metadata",
        ]
        read_only_fields = fields


class GenerateCertificateSerializer(serializers.Serializer):
    course_id = serializers.IntegerField()


class EligibilitySerializer(serializers.Serializer):
    def to_representation(self, instance):
        certificate = None
        if instance.certificate is not None:
            certificate = CertificateSerializer(instance.certificate, context=self.context).data
        return {
            "course": instance.course.slug,
            "published_count": instance.published_count,
            "graded_count": instance.graded_count,
            "passed_count": instance.passed_count,
            "remaining_count": instance.remaining_count,
            "completed": instance.completed,
            "total_score": instance.total_score,
            "total_possible": instance.total_possible,
            "eligible": instance.eligible,
            "certificate": certificate,
        }
