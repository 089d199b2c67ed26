from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .. import services
from ..models import CourseEnrollment
from .serializers import CourseEnrollmentSerializer, CourseSerializer


class CourseCatalogView(generics.ListAPIView):
    """Browse published courses; ``?category=`` and ``?level=`` narrow the list."""

    serializer_class = CourseSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        return services.list_catalog(self.request.query_params)


class CourseDetailView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, slug: str, *args, **kwargs):
        course = services.get_published_course(slug)
        return Response(CourseSerializer(course, context={"request": request}).data)


class CourseEnrollView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, slug: str, *args, **kwargs):
        course = services.get_published_course(slug)
        enrollment = services.enroll(request.user, course)
        serializer = CourseEnrollmentSerializer(enrollment, context={"request": request})
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class MyEnrollmentsView(generics.ListAPIView):
    serializer_class = CourseEnrollmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return (
            CourseEnrollment.objects.filter(student=self.request.user)
            .select_related("course")
            .order_by("-enrolled_at")
        )
