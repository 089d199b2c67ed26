from django.contrib import admin

from .models import Certificate


@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = (
        "verification_code",
        "student_name",
        "course",
        "issued_at",
        "expires_at",
    )
    list_filter = ("course",)
    search_fields = ("verification_code", "student_name", "user__username", "course__title")
    readonly_fields = ("id", "verification_code", "issued_at", "pdf_url", "pdf_generated_at", "metadata")
