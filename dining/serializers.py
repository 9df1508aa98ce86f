# dining/serializers.py

from rest_framework import serializers
from .models import OpeningHours


def human_date(day):
    """Format like 'Sunday, June 1, 2025'."""
    return f"{day:%A, %B} {day.day}, {day.year}"


# ==============================================================================
# Availability
# ==============================================================================

class TimeSlotSerializer(serializers.Serializer):
    """Read-only view of `dining.availability.TimeSlot`."""

    time = serializers.CharField()
    available = serializers.BooleanField()
    tables_remaining = serializers.IntegerField()
    total_tables = serializers.IntegerField()


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField(input_formats=["%Y-%m-%d"])


# ==============================================================================
# Opening hours
# ==============================================================================

class OpeningHoursSerializer(serializers.ModelSerializer):
    open = serializers.TimeField(format="%H:%M")
    close = serializers.TimeField(format="%H:%M")

    class Meta:
        model = OpeningHours
        fields = ["id", "day", "open", "close", "closed"]


class NotificationPayloadSerializer(serializers.Serializer):
    """
    Shape handed to `dining.notifications.dispatch`.

    Optional fields are dropped when empty so templates can test for them.
    """

    name = serializers.CharField()
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    guests = serializers.IntegerField(min_value=1)
    date = serializers.CharField()
    time = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    special_requests = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        return {key: value for key, value in data.items() if value not in (None, "")}


# ==============================================================================
# Integration Helper: payloads for outgoing email
# ==============================================================================

def notification_payload(reservation):
    """
    Build the notification payload for a saved reservation.

    Usage:
        notifications.dispatch("received", notification_payload(reservation))
    """
    return dict(NotificationPayloadSerializer({
        "name": reservation.name,
        "email": reservation.email,
        "phone": reservation.phone,
        "guests": reservation.guests,
        "date": human_date(reservation.date),
        "time": reservation.time,
        "special_requests": reservation.special_requests,
    }).data)
