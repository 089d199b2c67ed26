from rest_framework import generics, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from courses import services as course_services

from .. import services
from .serializers import (
    CertificateSerializer,
    EligibilitySerializer,
    GenerateCertificateSerializer,
)


class GenerateCertificateView(APIView):
    """Render the caller's certificate PDF and return its download URL."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = GenerateCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.generate_certificate(
            request.user, serializer.validated_data["course_id"]
        )
        return Response(result)


class CertificateDetailView(APIView):
    """Public lookup by certificate id; unknown ids yield ``{"data": null}``."""

    permission_classes = [permissions.AllowAny]

    def get(self, request, certificate_id, *args, **kwargs):
        certificate = services.lookup_certificate(certificate_id)
        data = None
        if certificate is not None:
            data = CertificateSerializer(certificate, context={"request": request}).data
        return Response({"data": data})


class CertificateVerifyView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, code: str, *args, **kwargs):
        verification = services.verify_certificate(code)
        certificate = None
        if verification.certificate is not None:
            certificate = CertificateSerializer(
                verification.certificate, context={"request": request}
            ).data
        return Response(
            {
                "is_valid": verification.is_valid,
                "verified_at": verification.verified_at,
                "certificate": certificate,
            }
        )


class MyCertificatesView(generics.ListAPIView):
    serializer_class = CertificateSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return services.list_user_certificates(self.request.user)


class CertificateEligibilityView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, slug: str, *args, **kwargs):
        course = course_services.get_published_course(slug)
        report = services.check_eligibility(request.user, course)
        return Response(EligibilitySerializer(report, context={"request": request}).data)
