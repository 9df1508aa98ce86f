"""
dining/availability.py

Time-slot availability shared by the public reservation wizard and the staff
dashboard.

Everything in here is pure: callers load opening hours, settings and the
day's reservations first, then ask for a slot list. A reservation occupies one
table for the half-open interval ``[time, time + reservation_duration)``; a
candidate slot is bookable while fewer than ``total_tables`` of those
intervals overlap it. The guest-facing flow additionally requires the slot to
start at least ``min_reservation_notice`` minutes after ``now``.
"""

import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timedelta

logger = logging.getLogger(__name__)

# Used when a stored reservation has no parsable time.
FALLBACK_RESERVATION_TIME = time(0, 0)

# Older rows used this key before it was renamed to seats_per_table.
LEGACY_SETTING_KEYS = {"seats_per_table": "max_guests_per_table"}

# Settings that must stay strictly positive; anything else may be zero.
POSITIVE_SETTINGS = {"seats_per_table", "reservation_duration", "time_slot_interval"}


# ==============================================================================
# TYPED SETTINGS
# ==============================================================================

@dataclass(frozen=True)
class ReservationSettings:
    """Reservation settings parsed once from the raw key/value rows."""

    total_tables: int = 10
    seats_per_table: int = 4
    reservation_duration: int = 120
    time_slot_interval: int = 30
    min_reservation_notice: int = 60

    @classmethod
    def from_rows(cls, rows):
        """
        Build settings from ``(key, value)`` pairs.

        Missing keys, non-numeric values and out-of-range numbers fall back
        to the defaults declared on the class.
        """
        raw = {str(key): value for key, value in rows}
        parsed = {}
        for field in fields(cls):
            value = raw.get(field.name)
            if value in (None, "") and field.name in LEGACY_SETTING_KEYS:
                value = raw.get(LEGACY_SETTING_KEYS[field.name])
            if value in (None, ""):
                continue
            try:
                number = int(str(value).strip())
            except ValueError:
                logger.warning(f"Ignoring non-numeric setting {field.name}={value!r}")
                continue
            minimum = 1 if field.name in POSITIVE_SETTINGS else 0
            if number < minimum:
                logger.warning(f"Ignoring out-of-range setting {field.name}={number}")
                continue
            parsed[field.name] = number
        return cls(**parsed)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.reservation_duration)

    @property
    def interval(self) -> timedelta:
        return timedelta(minutes=self.time_slot_interval)


@dataclass(frozen=True)
class TimeSlot:
    time: str
    available: bool
    tables_remaining: int
    total_tables: int


# ==============================================================================
# PARSING HELPERS
# ==============================================================================

def parse_clock(value):
    """
    Parse ``HH:MM`` (or ``HH:MM:SS``) into a ``time``.

    Returns ``None`` for empty or malformed input.
    """
    if isinstance(value, time):
        return value
    if not value:
        return None
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def parse_day(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Only the YYYY-MM-DD part matters; some stores append a time component.
    return date.fromisoformat(str(value)[:10])


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open interval test: [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


# ==============================================================================
# SLOT GENERATION
# ==============================================================================

def generate_slot_times(day, hours, settings):
    """
    Candidate slot starts covering ``[open, close)`` of ``day``.

    ``hours`` is any object exposing ``open``, ``close`` and ``closed``; a
    missing entry or a closed day yields no slots. Windows that cross
    midnight are not supported and also yield no slots.
    """
    if hours is None or hours.closed:
        return []

    opens_at = parse_clock(hours.open)
    closes_at = parse_clock(hours.close)
    if opens_at is None or closes_at is None:
        logger.warning(f"Unparsable opening hours for {day}: {hours.open!r}-{hours.close!r}")
        return []

    current = datetime.combine(day, opens_at)
    end = datetime.combine(day, closes_at)

    slots = []
    while current < end:
        slots.append(current)
        current += settings.interval
    return slots


# ==============================================================================
# CAPACITY ACCOUNTING
# ==============================================================================

def occupancy_interval(reservation, settings):
    """Return the ``(start, end)`` datetimes a reservation holds a table for."""
    starts_at = parse_clock(reservation.time)
    if starts_at is None:
        logger.debug(
            f"Reservation {getattr(reservation, 'pk', None)} has unusable time "
            f"{reservation.time!r}; assuming {FALLBACK_RESERVATION_TIME:%H:%M}"
        )
        starts_at = FALLBACK_RESERVATION_TIME
    start = datetime.combine(parse_day(reservation.date), starts_at)
    return start, start + settings.duration


def tables_in_use(slot_start, intervals, settings) -> int:
    """Count occupancy intervals overlapping ``[slot_start, slot_start + duration)``."""
    slot_end = slot_start + settings.duration
    return sum(
        1 for res_start, res_end in intervals
        if overlaps(slot_start, slot_end, res_start, res_end)
    )


# ==============================================================================
# AVAILABILITY
# ==============================================================================

def compute_availability(day, hours, settings, reservations, notice_minutes=None, now=None):
    """
    Build the slot list for ``day``.

    ``notice_minutes=None`` disables the advance-notice gate (staff bookings);
    any integer enforces ``slot_start - now >= notice_minutes``. ``now`` is a
    naive wall-clock datetime in venue time and defaults to the current time.
    """
    candidates = generate_slot_times(day, hours, settings)
    if not candidates:
        return []

    intervals = [occupancy_interval(r, settings) for r in reservations]

    if notice_minutes is not None and now is None:
        now = datetime.now()
    notice = timedelta(minutes=notice_minutes or 0)

    slots = []
    for slot_start in candidates:
        in_use = tables_in_use(slot_start, intervals, settings)
        available = in_use < settings.total_tables
        if notice_minutes is not None:
            available = available and (slot_start - now) >= notice
        slots.append(TimeSlot(
            time=slot_start.strftime("%H:%M"),
            available=available,
            tables_remaining=max(0, settings.total_tables - in_use),
            total_tables=settings.total_tables,
        ))
    return slots


def public_availability(day, hours, settings, reservations, now=None):
    """Slots offered to guests: capacity plus the minimum-notice rule."""
    return compute_availability(
        day, hours, settings, reservations,
        notice_minutes=settings.min_reservation_notice, now=now,
    )


def admin_availability(day, hours, settings, reservations):
    """Slots offered to staff: capacity only, walk-ins allowed."""
    return compute_availability(day, hours, settings, reservations)
