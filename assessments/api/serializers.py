import hashlib
import random

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from ..models import Assessment, QuizQuestion, Submission
from ..service_utils import countdown as countdown_service
from ..service_utils import submissions as submission_service
from ..service_utils.availability import check_availability
from ..utils.rendering import render_feedback, render_instructions


def _as_drf_error(exc: DjangoValidationError) -> serializers.ValidationError:
    if hasattr(exc, "error_dict"):
        return serializers.ValidationError(exc.message_dict)
    return serializers.ValidationError(exc.messages)


def _shuffle_seed(*parts) -> int:
    base = ":".join(str(part) for part in parts)
    digest = hashlib.sha256(base.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def _countdown_payload(remaining):
    if remaining is None:
        return None
    remaining_ms = int(remaining.total_seconds() * 1000)
    return {
        "remaining_ms": remaining_ms,
        "display": countdown_service.format_remaining(remaining_ms, "full"),
        "urgency": countdown_service.urgency(remaining_ms),
    }


class QuizQuestionSerializer(serializers.ModelSerializer):
    """Question as shown to learners: no answer key."""

    options = serializers.SerializerMethodField()

    class Meta:
        model = QuizQuestion
        fields = ["id", "order", "text", "question_type", "options", "points"]
        read_only_fields = fields

    def get_options(self, obj: QuizQuestion):
        options = [
            {"index": index, "label": label} for index, label in enumerate(obj.options or [])
        ]
        user = self.context.get("user")
        if obj.assessment.shuffle_answers and user is not None:
            random.Random(_shuffle_seed(obj.assessment_id, obj.id, user.pk)).shuffle(options)
        return options


class QuizQuestionReviewSerializer(QuizQuestionSerializer):
    class Meta(QuizQuestionSerializer.Meta):
        fields = QuizQuestionSerializer.Meta.fields + [
            "correct_option_index",
            "correct_answer",
            "feedback",
        ]
        read_only_fields = fields


class AssessmentSummarySerializer(serializers.ModelSerializer):
    course = serializers.SlugRelatedField(slug_field="slug", read_only=True)
    availability = serializers.SerializerMethodField()

    class Meta:
        model = Assessment
        fields = [
            "id",
            "course",
            "kind",
            "title",
            "description",
            "due_date",
            "available_from",
            "available_until",
            "total_points",
            "passing_score",
            "time_limit",
            "availability",
        ]
        read_only_fields = fields

    def get_availability(self, obj: Assessment):
        result = check_availability(obj)
        return {"allowed": result.allowed, "reason": result.reason}


class AssessmentSerializer(serializers.ModelSerializer):
    course = serializers.SlugRelatedField(slug_field="slug", read_only=True)
    instructions_html = serializers.SerializerMethodField()
    questions = serializers.SerializerMethodField()

    class Meta:
        model = Assessment
        fields = [
            "id",
            "course",
            "kind",
            "title",
            "description",
            "instructions",
            "instructions_format",
            "instructions_html",
            "attachments",
            "due_date",
            "available_from",
            "available_until",
            "total_points",
            "passing_score",
            "submission_type",
            "time_limit",
            "attempts_allowed",
            "is_group_activity",
            "min_group_size",
            "max_group_size",
            "submission_instructions",
            "questions",
        ]
        read_only_fields = fields

    def get_instructions_html(self, obj: Assessment) -> str:
        return str(render_instructions(obj))

    def get_questions(self, obj: Assessment):
        if obj.kind != Assessment.Kind.QUIZ:
            return []
        questions = list(obj.questions.all())
        user = self.context.get("user")
        if obj.shuffle_questions and user is not None:
            random.Random(_shuffle_seed(obj.id, user.pk)).shuffle(questions)

        submission = self.context.get("submission")
        reveal = (
            obj.show_correct_answers
            and submission is not None
            and submission.is_submitted
            and not submission.has_open_session
        )
        serializer_class = QuizQuestionReviewSerializer if reveal else QuizQuestionSerializer
        return serializer_class(questions, many=True, context=self.context).data


class SubmissionSerializer(serializers.ModelSerializer):
    answers = serializers.SerializerMethodField()
    feedback_html = serializers.SerializerMethodField()
    deadline = serializers.DateTimeField(read_only=True)
    time_left = serializers.SerializerMethodField()
    countdown = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = [
            "id",
            "assessment",
            "course",
            "status",
            "text",
            "files",
            "answers",
            "score",
            "feedback",
            "feedback_html",
            "certificate_eligible",
            "attempt_number",
            "started_at",
            "submitted_at",
            "time_spent",
            "graded_at",
            "deadline",
            "time_left",
            "countdown",
        ]
        read_only_fields = fields

    def get_answers(self, obj: Submission):
        assessment = obj.assessment
        if assessment.show_correct_answers or obj.status == Submission.Status.GRADED:
            return obj.answers
        return [
            {"question_id": item.get("question_id"), "answer": item.get("answer")}
            for item in obj.answers or []
        ]

    def get_feedback_html(self, obj: Submission) -> str:
        return str(render_feedback(obj.feedback))

    def _remaining(self, obj: Submission):
        if obj.status != Submission.Status.DRAFT and not obj.has_open_session:
            return None
        return submission_service.get_time_left(obj, obj.assessment)

    def get_time_left(self, obj: Submission):
        remaining = self._remaining(obj)
        if remaining is None:
            return None
        return serializers.DurationField().to_representation(remaining)

    def get_countdown(self, obj: Submission):
        return _countdown_payload(self._remaining(obj))


class LoadedAssessmentSerializer(serializers.Serializer):
    def to_representation(self, instance: submission_service.LoadedAssessment):
        context = {
            **self.context,
            "submission": instance.submission,
        }
        submission = None
        if instance.submission is not None:
            submission = SubmissionSerializer(instance.submission, context=context).data
        time_left = instance.time_left
        return {
            "assessment": AssessmentSerializer(instance.assessment, context=context).data,
            "submission": submission,
            "availability": {
                "allowed": instance.availability.allowed,
                "reason": instance.availability.reason,
            },
            "time_left": serializers.DurationField().to_representation(time_left)
            if time_left is not None
            else None,
            "countdown": _countdown_payload(time_left),
            "attempts_left": instance.attempts_left,
        }


class SubmissionDraftInputSerializer(serializers.Serializer):
    text = serializers.CharField(required=False, allow_blank=True, default="")
    files = serializers.ListField(
        child=serializers.DictField(),
        required=False,
        default=list,
    )
    answers = serializers.JSONField(required=False, default=list)

    def validate_answers(self, value):
        if not isinstance(value, (list, dict)):
            raise serializers.ValidationError("Answers must be a list or an object")
        return value

    def to_draft(self) -> submission_service.SubmissionDraft:
        return submission_service.SubmissionDraft.from_payload(self.validated_data)


class SubmitInputSerializer(SubmissionDraftInputSerializer):
    auto = serializers.BooleanField(required=False, default=False)


class UploadSerializer(serializers.Serializer):
    file = serializers.FileField()


# --- admin ---------------------------------------------------------------


class AdminQuizQuestionSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(read_only=True)

    class Meta:
        model = QuizQuestion
        fields = [
            "id",
            "order",
            "text",
            "question_type",
            "options",
            "correct_option_index",
            "correct_answer",
            "points",
            "feedback",
        ]


class AdminAssessmentSerializer(serializers.ModelSerializer):
    questions = AdminQuizQuestionSerializer(many=True, required=False)
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Assessment
        fields = [
            "id",
            "course",
            "kind",
            "title",
            "description",
            "instructions",
            "instructions_format",
            "attachments",
            "due_date",
            "available_from",
            "available_until",
            "total_points",
            "passing_score",
            "is_published",
            "submission_type",
            "time_limit",
            "attempts_allowed",
            "shuffle_questions",
            "shuffle_answers",
            "show_correct_answers",
            "is_group_activity",
            "min_group_size",
            "max_group_size",
            "submission_instructions",
            "created_by",
            "created_at",
            "updated_at",
            "questions",
        ]
        read_only_fields = ["id", "created_by", "created_at", "updated_at"]

    def validate(self, attrs):
        attrs = super().validate(attrs)
        candidate_values = {
            key: value for key, value in attrs.items() if key != "questions"
        }
        if self.instance is not None:
            candidate = Assessment(
                **{
                    field.attname: getattr(self.instance, field.attname)
                    for field in Assessment._meta.concrete_fields
                }
            )
        else:
            candidate = Assessment()
        for key, value in candidate_values.items():
            setattr(candidate, key, value)
        try:
            candidate.clean()
        except DjangoValidationError as exc:
            raise _as_drf_error(exc) from exc

        questions = attrs.get("questions")
        if questions:
            if candidate.kind != Assessment.Kind.QUIZ:
                raise serializers.ValidationError(
                    {"questions": "Only quizzes can have questions."}
                )
            orders = [question["order"] for question in questions]
            if len(orders) != len(set(orders)):
                raise serializers.ValidationError(
                    {"questions": "Question order values must be unique."}
                )
            for question in questions:
                question_model = QuizQuestion(**question)
                try:
                    question_model.clean()
                except DjangoValidationError as exc:
                    raise _as_drf_error(exc) from exc
                question["options"] = question_model.options
        return attrs

    def _replace_questions(self, assessment: Assessment, questions) -> None:
        assessment.questions.all().delete()
        QuizQuestion.objects.bulk_create(
            [QuizQuestion(assessment=assessment, **question) for question in questions]
        )

    @transaction.atomic
    def create(self, validated_data):
        questions = validated_data.pop("questions", [])
        assessment = super().create(validated_data)
        if questions:
            self._replace_questions(assessment, questions)
        return assessment

    @transaction.atomic
    def update(self, instance, validated_data):
        questions = validated_data.pop("questions", None)
        assessment = super().update(instance, validated_data)
        if questions is not None:
            self._replace_questions(assessment, questions)
        return assessment


class AdminSubmissionSerializer(SubmissionSerializer):
    user = serializers.SerializerMethodField()
    graded_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta(SubmissionSerializer.Meta):
        fields = SubmissionSerializer.Meta.fields + ["user", "graded_by"]
        read_only_fields = fields

    def get_answers(self, obj: Submission):
        return obj.answers

    def get_user(self, obj: Submission):
        user = obj.user
        return {
            "id": user.pk,
            "username": user.get_username(),
            "name": f"{user.first_name} {user.last_name}".strip(),
            "email": user.email,
        }


class GradeInputSerializer(serializers.Serializer):
    score = serializers.DecimalField(max_digits=9, decimal_places=2)
    feedback = serializers.CharField(required=False, allow_blank=True, default="")
    certificate_eligible = serializers.BooleanField(required=False, default=False)


class ScorePreviewSerializer(serializers.Serializer):
    score = serializers.DecimalField(max_digits=9, decimal_places=2)


__all__ = [
    "AdminAssessmentSerializer",
    "AdminQuizQuestionSerializer",
    "AdminSubmissionSerializer",
    "AssessmentSerializer",
    "AssessmentSummarySerializer",
    "GradeInputSerializer",
    "LoadedAssessmentSerializer",
    "QuizQuestionReviewSerializer",
    "QuizQuestionSerializer",
    "ScorePreviewSerializer",
    "SubmissionDraftInputSerializer",
    "SubmissionSerializer",
    "SubmitInputSerializer",
    "UploadSerializer",
]
