from django import forms
from django.contrib import admin

from .models import Assessment, QuizQuestion, Submission


class QuizQuestionAdminForm(forms.ModelForm):
    options = forms.JSONField(
        required=False,
        widget=forms.Textarea(attrs={"rows": 3, "cols": 60}),
        help_text='List of option labels, e.g. ["Paris", "London", "Rome"].',
    )

    class Meta:
        model = QuizQuestion
        fields = "__all__"


class QuizQuestionInline(admin.StackedInline):
    model = QuizQuestion
    form = QuizQuestionAdminForm
    extra = 0
    ordering = ("order",)


@admin.register(Assessment)
class AssessmentAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "course",
        "kind",
        "due_date",
        "total_points",
        "passing_score",
        "is_published",
    )
    list_filter = ("kind", "is_published", "course")
    search_fields = ("title", "course__title")
    autocomplete_fields = ("course",)
    readonly_fields = ("created_by", "created_at", "updated_at")
    inlines = [QuizQuestionInline]

    def save_model(self, request, obj, form, change):
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = (
        "assessment",
        "user",
        "status",
        "score",
        "attempt_number",
        "submitted_at",
        "graded_at",
    )
    list_filter = ("status", "course", "assessment__kind")
    search_fields = ("user__username", "assessment__title")
    readonly_fields = ("started_at", "submitted_at", "time_spent", "graded_at", "graded_by")
