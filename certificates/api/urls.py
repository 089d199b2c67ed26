from django.urls import path

from .views import (
    CertificateDetailView,
    CertificateEligibilityView,
    CertificateVerifyView,
    GenerateCertificateView,
    MyCertificatesView,
)


urlpatterns = [
    path(
        "api/certificates/generate/",
        GenerateCertificateView.as_view(),
        name="certificate-generate",
    ),
    path("api/certificates/mine/", MyCertificatesView.as_view(), name="certificate-mine"),
    path(
        "api/certificates/verify/<str:code>/",
        CertificateVerifyView.as_view(),
        name="certificate-verify",
    ),
    path(
        "api/certificates/<uuid:certificate_id>/",
        CertificateDetailView.as_view(),
        name="certificate-detail",
    ),
    path(
        "api/courses/<slug:slug>/certificate-eligibility/",
        CertificateEligibilityView.as_view(),
        name="certificate-eligibility",
    ),
]
