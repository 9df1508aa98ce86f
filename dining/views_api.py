import logging

from django.db import DatabaseError
from rest_framework import permissions, status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .models import OpeningHours
from .serializers import AvailabilityQuerySerializer, OpeningHoursSerializer, TimeSlotSerializer

logger = logging.getLogger(__name__)


class AvailabilityAPIView(APIView):
    """
    GET /api/v1/availability/?date=YYYY-MM-DD

    Public slots for one day, with the minimum-notice rule applied.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        day = query.validated_data['date']

        try:
            closed = services.is_closed(day)
            slots = [] if closed else services.public_time_slots(day)
        except DatabaseError as exc:
            logger.error(f"Availability lookup failed for {day}: {exc}")
            return Response(
                {"error": "Something went wrong while loading data. Please try again later."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response({
            "date": day.isoformat(),
            "closed": closed,
            "slots": TimeSlotSerializer(slots, many=True).data,
        })


class OpeningHoursViewSet(viewsets.ReadOnlyModelViewSet):
    """Weekly opening hours, Monday first."""
    serializer_class = OpeningHoursSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def get_queryset(self):
        services.load_opening_hours()
        return OpeningHours.objects.in_week_order()
