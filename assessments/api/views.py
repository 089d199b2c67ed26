from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from courses import services as course_services

from ..models import Assessment, Submission
from ..service_utils import grading as grading_service
from ..service_utils import submissions as submission_service
from ..utils.files import store_upload
from .serializers import (
    AdminAssessmentSerializer,
    AdminSubmissionSerializer,
    AssessmentSummarySerializer,
    GradeInputSerializer,
    LoadedAssessmentSerializer,
    ScorePreviewSerializer,
    SubmissionDraftInputSerializer,
    SubmissionSerializer,
    SubmitInputSerializer,
    UploadSerializer,
)


class CourseAssessmentListView(APIView):
    """Published assessments of a course."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, slug: str, *args, **kwargs):
        course = course_services.get_published_course(slug)
        assessments = submission_service.list_course_assessments(course)
        serializer = AssessmentSummarySerializer(
            assessments, many=True, context={"request": request}
        )
        return Response(serializer.data)


class AssessmentDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, assessment_id: int, *args, **kwargs):
        loaded = submission_service.load_assessment(request.user, assessment_id)
        serializer = LoadedAssessmentSerializer(
            loaded, context={"request": request, "user": request.user}
        )
        return Response(serializer.data)


class AssessmentStartView(APIView):
    """Open the timed session; repeated calls return the running session."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assessment_id: int, *args, **kwargs):
        submission = submission_service.start_session(request.user, assessment_id)
        serializer = SubmissionSerializer(submission, context={"request": request})
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class AssessmentDraftView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assessment_id: int, *args, **kwargs):
        input_serializer = SubmissionDraftInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        submission = submission_service.save_draft(
            request.user,
            assessment_id,
            input_serializer.to_draft(),
        )
        serializer = SubmissionSerializer(submission, context={"request": request})
        return Response(serializer.data)


class AssessmentSubmitView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assessment_id: int, *args, **kwargs):
        input_serializer = SubmitInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        submission = submission_service.submit(
            request.user,
            assessment_id,
            input_serializer.to_draft(),
            auto=input_serializer.validated_data["auto"],
        )
        serializer = SubmissionSerializer(submission, context={"request": request})
        return Response(serializer.data)


class MySubmissionsView(generics.ListAPIView):
    serializer_class = SubmissionSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        course = None
        course_slug = self.request.query_params.get("course")
        if course_slug:
            course = course_services.get_published_course(course_slug)
        return submission_service.list_user_submissions(self.request.user, course)


class UploadView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, *args, **kwargs):
        serializer = UploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        descriptor = store_upload(request.user, serializer.validated_data["file"])
        return Response(descriptor, status=status.HTTP_201_CREATED)


class AdminAssessmentListCreateView(generics.ListCreateAPIView):
    serializer_class = AdminAssessmentSerializer
    permission_classes = [permissions.IsAdminUser]
    pagination_class = None

    def get_queryset(self):
        queryset = Assessment.objects.select_related("course").prefetch_related(
            submission_service.QUESTIONS_PREFETCH
        )
        course_id = self.request.query_params.get("course")
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        kind = self.request.query_params.get("kind")
        if kind:
            queryset = queryset.filter(kind=kind)
        return queryset.order_by("course", "due_date", "id")

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class AdminAssessmentDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = AdminAssessmentSerializer
    permission_classes = [permissions.IsAdminUser]
    lookup_url_kwarg = "assessment_id"

    def get_queryset(self):
        return Assessment.objects.select_related("course").prefetch_related(
            submission_service.QUESTIONS_PREFETCH
        )


class AdminAssessmentPublishView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, assessment_id: int, *args, **kwargs):
        assessment = get_object_or_404(Assessment, pk=assessment_id)
        serializer = AdminAssessmentSerializer(
            assessment,
            data={"is_published": request.data.get("is_published", True)},
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data["is_published"] and (
            assessment.kind == Assessment.Kind.QUIZ and not assessment.questions.exists()
        ):
            return Response(
                {"detail": "Add at least one question before publishing a quiz."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        serializer.save()
        return Response(serializer.data)


class AdminSubmissionListView(generics.ListAPIView):
    serializer_class = AdminSubmissionSerializer
    permission_classes = [permissions.IsAdminUser]
    pagination_class = None

    def get_queryset(self):
        assessment = get_object_or_404(Assessment, pk=self.kwargs["assessment_id"])
        queryset = Submission.objects.filter(assessment=assessment).select_related(
            "assessment", "user", "graded_by"
        )
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset.order_by("-submitted_at", "user__username")


class AdminScorePreviewView(APIView):
    """Report whether a score would pass and enable the certificate toggle."""

    permission_classes = [permissions.IsAdminUser]

    def get(self, request, assessment_id: int, *args, **kwargs):
        assessment = get_object_or_404(Assessment, pk=assessment_id)
        serializer = ScorePreviewSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        evaluation = grading_service.evaluate_score(
            assessment, serializer.validated_data["score"]
        )
        return Response(
            {
                "score": evaluation.score,
                "is_passing": evaluation.is_passing,
                "certificate_toggle_enabled": evaluation.certificate_toggle_enabled,
            }
        )


class AdminGradeSubmissionView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, submission_id: int, *args, **kwargs):
        serializer = GradeInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = grading_service.grade_submission(
            request.user,
            submission_id,
            **serializer.validated_data,
        )
        certificate = None
        if result.certificate is not None:
            certificate = {
                "id": str(result.certificate.id),
                "verification_code": result.certificate.verification_code,
            }
        return Response(
            {
                "submission": AdminSubmissionSerializer(
                    result.submission, context={"request": request}
                ).data,
                "is_passing": result.evaluation.is_passing,
                "certificate_toggle_enabled": result.evaluation.certificate_toggle_enabled,
                "certificate": certificate,
            }
        )
