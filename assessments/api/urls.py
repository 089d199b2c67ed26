from django.urls import path

from .views import (
    AdminAssessmentDetailView,
    AdminAssessmentListCreateView,
    AdminAssessmentPublishView,
    AdminGradeSubmissionView,
    AdminScorePreviewView,
    AdminSubmissionListView,
    AssessmentDetailView,
    AssessmentDraftView,
    AssessmentStartView,
    AssessmentSubmitView,
    CourseAssessmentListView,
    MySubmissionsView,
    UploadView,
)


urlpatterns = [
    path(
        "api/courses/<slug:slug>/assessments/",
        CourseAssessmentListView.as_view(),
        name="course-assessment-list",
    ),
    path(
        "api/assessments/<int:assessment_id>/",
        AssessmentDetailView.as_view(),
        name="assessment-detail",
    ),
    path(
        "api/assessments/<int:assessment_id>/start/",
        AssessmentStartView.as_view(),
        name="assessment-start",
    ),
    path(
        "api/assessments/<int:assessment_id>/draft/",
        AssessmentDraftView.as_view(),
        name="assessment-draft",
    ),
    path(
        "api/assessments/<int:assessment_id>/submit/",
        AssessmentSubmitView.as_view(),
        name="assessment-submit",
    ),
    path("api/submissions/mine/", MySubmissionsView.as_view(), name="submission-mine"),
    path("api/uploads/", UploadView.as_view(), name="upload-create"),
    path(
        "api/admin/assessments/",
        AdminAssessmentListCreateView.as_view(),
        name="admin-assessment-list",
    ),
    path(
        "api/admin/assessments/<int:assessment_id>/",
        AdminAssessmentDetailView.as_view(),
        name="admin-assessment-detail",
    ),
    path(
        "api/admin/assessments/<int:assessment_id>/publish/",
        AdminAssessmentPublishView.as_view(),
        name="admin-assessment-publish",
    ),
    path(
        "api/admin/assessments/<int:assessment_id>/submissions/",
        AdminSubmissionListView.as_view(),
        name="admin-submission-list",
    ),
    path(
        "api/admin/assessments/<int:assessment_id>/score-preview/",
        AdminScorePreviewView.as_view(),
        name="admin-score-preview",
    ),
    path(
        "api/admin/submissions/<int:submission_id>/grade/",
        AdminGradeSubmissionView.as_view(),
        name="admin-submission-grade",
    ),
]
