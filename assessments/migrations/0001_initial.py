from django.conf import settings
from django.core import validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("courses", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Assessment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("assignment", "Assignment"),
                            ("quiz", "Quiz"),
                            ("activity", "Activity"),
                        ],
                        default="assignment",
                        max_length=20,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("instructions", models.TextField(blank=True)),
                (
                    "instructions_format",
                    models.CharField(
                        choices=[
                            ("markdown", "Markdown"),
                            ("html", "HTML"),
                            ("plain", "Plain text"),
                        ],
                        default="markdown",
                        max_length=20,
                    ),
                ),
                ("attachments", models.JSONField(blank=True, default=list)),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("available_from", models.DateTimeField(blank=True, null=True)),
                ("available_until", models.DateTimeField(blank=True, null=True)),
                ("total_points", models.PositiveIntegerField(default=100)),
                ("passing_score", models.PositiveIntegerField(default=0)),
                ("is_published", models.BooleanField(default=False)),
                (
                    "submission_type",
                    models.CharField(
                        choices=[
                            ("file", "File"),
                            ("text", "Text"),
                            ("both", "Text and files"),
                            ("quiz", "Quiz answers"),
                            ("activity", "Activity"),
                        ],
                        default="text",
                        max_length=20,
                    ),
                ),
                ("time_limit", models.DurationField(blank=True, null=True)),
                ("attempts_allowed", models.PositiveIntegerField(blank=True, null=True)),
                ("shuffle_questions", models.BooleanField(default=False)),
                ("shuffle_answers", models.BooleanField(default=False)),
                ("show_correct_answers", models.BooleanField(default=False)),
                ("is_group_activity", models.BooleanField(default=False)),
                ("min_group_size", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("max_group_size", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("submission_instructions", models.TextField(blank=True)),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assessments",
                        to="courses.course",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="authored_assessments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("course", "due_date", "id"),
                "indexes": [
                    models.Index(fields=["course", "is_published"], name="assess_course_pub_idx"),
                    models.Index(fields=["course", "kind"], name="assess_course_kind_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="QuizQuestion",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order", models.PositiveIntegerField()),
                ("text", models.TextField()),
                (
                    "question_type",
                    models.CharField(
                        choices=[
                            ("multiple_choice", "Multiple choice"),
                            ("true_false", "True / false"),
                            ("short_answer", "Short answer"),
                            ("essay", "Essay"),
                            ("file_upload", "File upload"),
                        ],
                        default="multiple_choice",
                        max_length=20,
                    ),
                ),
                ("options", models.JSONField(blank=True, default=list)),
                (
                    "correct_option_index",
                    models.PositiveSmallIntegerField(blank=True, null=True),
                ),
                ("correct_answer", models.CharField(blank=True, max_length=500)),
                ("points", models.PositiveIntegerField(default=1)),
                ("feedback", models.TextField(blank=True)),
                (
                    "assessment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="questions",
                        to="assessments.assessment",
                    ),
                ),
            ],
            options={
                "ordering": ("assessment", "order"),
                "unique_together": {("assessment", "order")},
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("text", models.TextField(blank=True)),
                ("files", models.JSONField(blank=True, default=list)),
                ("answers", models.JSONField(blank=True, default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("submitted", "Submitted"),
                            ("late", "Late"),
                            ("graded", "Graded"),
                            ("missing", "Missing"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                (
                    "score",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=7,
                        null=True,
                        validators=[validators.MinValueValidator(0)],
                    ),
                ),
                ("feedback", models.TextField(blank=True)),
                ("certificate_eligible", models.BooleanField(default=False)),
                ("graded_at", models.DateTimeField(blank=True, null=True)),
                ("attempt_number", models.PositiveIntegerField(default=1)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("time_spent", models.DurationField(blank=True, null=True)),
                (
                    "assessment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="assessments.assessment",
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="courses.course",
                    ),
                ),
                (
                    "graded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="graded_submissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assessment_submissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("assessment", "user"),
                "indexes": [
                    models.Index(
                        fields=["user", "course", "status"],
                        name="assess_sub_user_course_idx",
                    ),
                    models.Index(fields=["assessment", "status"], name="assess_sub_status_idx"),
                ],
                "unique_together": {("assessment", "user")},
            },
        ),
    ]
