"""
dining/services.py

Data access and reservation workflows used by the public pages, the staff
dashboard, the JSON API and the Django admin.
"""

import logging
import re

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from . import notifications
from .availability import (
    ReservationSettings, admin_availability, parse_clock, parse_day, public_availability,
)
from .models import MenuItem, OpeningHours, Reservation, SystemSetting
from .serializers import notification_payload

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS = ("name", "email", "date", "time", "guests")


# ==============================================================================
# ERRORS
# ==============================================================================

class ReservationError(Exception):
    """A reservation could not be stored or changed."""


class ReservationValidationError(ReservationError):
    def __init__(self, errors):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))


# ==============================================================================
# CLOCK & WEEKDAY HELPERS
# ==============================================================================

def local_now():
    """Current wall-clock time at the venue, as a naive datetime."""
    return timezone.localtime().replace(tzinfo=None)


def weekday_key(day):
    return OpeningHours.Weekday.values[day.weekday()]


# ==============================================================================
# OPENING HOURS STORE
# ==============================================================================

def load_opening_hours():
    """All opening hours keyed by weekday id, seeding defaults on first use."""
    if OpeningHours.objects.ensure_defaults():
        logger.info("Seeded default opening hours")
    return {hours.id: hours for hours in OpeningHours.objects.all()}


def ordered_opening_hours():
    return sorted(load_opening_hours().values(), key=lambda h: h.sort_key)


def hours_for(day, hours_by_day=None):
    if hours_by_day is None:
        hours_by_day = load_opening_hours()
    return hours_by_day.get(weekday_key(day))


def is_closed(day, hours_by_day=None) -> bool:
    hours = hours_for(day, hours_by_day)
    return hours is None or hours.closed


def update_opening_hours(day_id, user=None, **changes):
    hours = OpeningHours.objects.get(pk=day_id)
    for field, value in changes.items():
        setattr(hours, field, value)
    hours.save(update_fields=list(changes))
    audit_logger.info(f"{_actor(user)} updated opening hours {day_id}: {changes}")
    return hours


# ==============================================================================
# SETTINGS STORE
# ==============================================================================

def load_reservation_settings():
    return ReservationSettings.from_rows(SystemSetting.objects.values_list("key", "value"))


def update_setting(pk, value, user=None):
    setting = SystemSetting.objects.get(pk=pk)
    old_value = setting.value
    setting.value = value
    setting.save(update_fields=["value", "updated_at"])
    audit_logger.info(f"{_actor(user)} changed setting {setting.key}: {old_value!r} -> {value!r}")
    return setting


# ==============================================================================
# AVAILABILITY
# ==============================================================================

def reservations_for_date(day):
    return list(Reservation.objects.for_date(day))


def public_time_slots(day, now=None):
    """Slots for the reservation wizard."""
    hours = hours_for(day)
    if hours is None or hours.closed:
        return []
    settings = load_reservation_settings()
    return public_availability(
        day, hours, settings, reservations_for_date(day), now=now or local_now()
    )


def admin_time_slots(day):
    """Slots for the staff calendar; no notice window."""
    hours = hours_for(day)
    if hours is None or hours.closed:
        return []
    return admin_availability(day, hours, load_reservation_settings(), reservations_for_date(day))


# ==============================================================================
# RESERVATION SUBMISSION
# ==============================================================================

def validate_reservation(data):
    """
    Check required fields and the email shape.

    Returns a cleaned copy of ``data``; raises ReservationValidationError.
    """
    cleaned = {}
    errors = {}
    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if isinstance(value, str):
            value = value.strip()
        if value in (None, ""):
            errors[field] = "This field is required."
        cleaned[field] = value

    email = cleaned.get("email")
    if email and not EMAIL_PATTERN.match(email):
        errors["email"] = "Please enter a valid email address."

    day = cleaned.get("date")
    if day:
        try:
            cleaned["date"] = parse_day(day)
        except ValueError:
            errors["date"] = "Use YYYY-MM-DD."

    time_value = cleaned.get("time")
    if time_value:
        parsed = parse_clock(time_value)
        if parsed is None:
            errors["time"] = "Use HH:MM."
        else:
            cleaned["time"] = parsed.strftime("%H:%M")

    guests = cleaned.get("guests")
    if guests not in (None, ""):
        try:
            cleaned["guests"] = int(guests)
            if cleaned["guests"] < 1:
                raise ValueError
        except (TypeError, ValueError):
            errors["guests"] = "Enter a positive number of guests."

    if errors:
        raise ReservationValidationError(errors)

    cleaned["phone"] = (data.get("phone") or "").strip() or None
    cleaned["special_requests"] = (data.get("special_requests") or "").strip() or None
    return cleaned


def _create_reservation(cleaned, status):
    try:
        with transaction.atomic():
            reservation = Reservation.objects.create(
                date=cleaned["date"],
                time=cleaned["time"],
                name=cleaned["name"],
                email=cleaned["email"],
                phone=cleaned["phone"],
                guests=cleaned["guests"],
                special_requests=cleaned["special_requests"],
                status=status,
            )
    except DatabaseError as exc:
        logger.error(f"Could not store reservation for {cleaned['email']}: {exc}", exc_info=True)
        raise ReservationError("We could not save your reservation. Please try again.") from exc
    return reservation


def submit_reservation(data):
    """
    Guest self-service booking.

    Stores the reservation as pending, then queues the "received" emails once
    the row is committed. Email problems never affect the booking.
    """
    cleaned = validate_reservation(data)
    reservation = _create_reservation(cleaned, Reservation.Status.PENDING)
    logger.info(f"New reservation #{reservation.pk} for {reservation.date} {reservation.time}")

    payload = notification_payload(reservation)
    transaction.on_commit(
        lambda: notifications.dispatch(notifications.NotificationKind.RECEIVED, payload)
    )
    return reservation


def create_manual_reservation(data, user=None):
    """Staff booking: confirmed straight away, no notice window, no emails."""
    cleaned = validate_reservation(data)
    reservation = _create_reservation(cleaned, Reservation.Status.CONFIRMED)
    audit_logger.info(
        f"{_actor(user)} created reservation #{reservation.pk} "
        f"for {reservation.date} {reservation.time}"
    )
    return reservation


# ==============================================================================
# STAFF TRANSITIONS
# ==============================================================================

def toggle_reservation_status(pk, user=None):
    """pending -> confirmed, confirmed -> pending."""
    reservation = Reservation.objects.get(pk=pk)
    previous = reservation.status
    reservation.status = reservation.next_status()
    reservation.save(update_fields=["status"])
    audit_logger.info(f"{_actor(user)} set reservation #{pk}: {previous} -> {reservation.status}")
    return reservation


def delete_reservation(pk, user=None):
    reservation = Reservation.objects.get(pk=pk)
    reservation.delete()
    audit_logger.info(f"{_actor(user)} deleted reservation #{pk} ({reservation.date} {reservation.time})")
    return reservation


def confirm_and_notify(reservations, user=None):
    """Confirm each reservation and email the guest."""
    count = 0
    for reservation in reservations:
        reservation.status = Reservation.Status.CONFIRMED
        reservation.save(update_fields=["status"])
        payload = notification_payload(reservation)
        transaction.on_commit(
            lambda payload=payload: notifications.dispatch(notifications.NotificationKind.CONFIRMED, payload)
        )
        count += 1
    audit_logger.info(f"{_actor(user)} confirmed and notified {count} reservation(s)")
    return count


def decline_and_notify(reservations, user=None):
    """Email each guest that the booking was declined, then delete it."""
    count = 0
    for reservation in reservations:
        payload = notification_payload(reservation)
        reservation.delete()
        transaction.on_commit(
            lambda payload=payload: notifications.dispatch(notifications.NotificationKind.DECLINED, payload)
        )
        count += 1
    audit_logger.info(f"{_actor(user)} declined and notified {count} reservation(s)")
    return count


# ==============================================================================
# MENU
# ==============================================================================

def save_menu_item(form, user=None):
    """Save a validated MenuItemForm (create or edit)."""
    created = form.instance.pk is None
    item = form.save()
    audit_logger.info(f"{_actor(user)} {'created' if created else 'updated'} menu item #{item.pk} ({item.name})")
    return item


def toggle_menu_item(pk, user=None):
    item = MenuItem.objects.get(pk=pk)
    item.active = not item.active
    item.save(update_fields=["active", "updated_at"])
    audit_logger.info(f"{_actor(user)} set menu item #{pk} active={item.active}")
    return item


def delete_menu_item(pk, user=None):
    item = MenuItem.objects.get(pk=pk)
    item.delete()
    audit_logger.info(f"{_actor(user)} deleted menu item #{pk} ({item.name})")
    return item


def filter_menu_items(category="all", status="all", search=""):
    items = MenuItem.objects.all()
    if category and category != "all":
        items = items.filter(category=category)
    if status == "active":
        items = items.filter(active=True)
    elif status == "inactive":
        items = items.filter(active=False)
    search = (search or "").strip()
    if search:
        items = items.filter(Q(name__icontains=search) | Q(description__icontains=search))
    return items


# ==============================================================================
# DASHBOARD
# ==============================================================================

def dashboard_stats(today=None):
    today = today or timezone.localdate()
    total_tables = (
        SystemSetting.objects.filter(key=SystemSetting.Key.TOTAL_TABLES)
        .values_list("value", flat=True)
        .first()
    )
    return {
        "today_count": Reservation.objects.for_date(today).count(),
        "pending_count": Reservation.objects.pending().count(),
        "active_menu_items": MenuItem.objects.active().count(),
        "total_tables": total_tables if total_tables is not None else "—",
        "upcoming": list(Reservation.objects.upcoming(today)[:8]),
    }


def _actor(user):
    if user is None or not getattr(user, "is_authenticated", False):
        return "system"
    return f"User {user.get_username()}"
