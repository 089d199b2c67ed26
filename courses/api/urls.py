from django.urls import path

from .views import (
    CourseCatalogView,
    CourseDetailView,
    CourseEnrollView,
    MyEnrollmentsView,
)


urlpatterns = [
    path("api/courses/", CourseCatalogView.as_view(), name="course-list"),
    path("api/courses/mine/", MyEnrollmentsView.as_view(), name="course-enrollments"),
    path("api/courses/<slug:slug>/", CourseDetailView.as_view(), name="course-detail"),
    path(
        "api/courses/<slug:slug>/enroll/",
        CourseEnrollView.as_view(),
        name="course-enroll",
    ),
]
