from datetime import time

from django.core.validators import MinValueValidator
from django.db import models
from django.urls import reverse

# =============================================================================
# === BASE MANAGERS & UTILITIES ==============================================
# =============================================================================

class OpeningHoursManager(models.Manager):
    def in_week_order(self):
        return self.order_by(OpeningHours.week_order())

    def ensure_defaults(self):
        """
        Seed one row per weekday (09:00-22:00, open) when the table is empty.
        Existing rows are never touched.
        """
        if self.exists():
            return False
        self.bulk_create([
            self.model(
                id=day_id,
                day=label,
                open=OpeningHours.DEFAULT_OPEN,
                close=OpeningHours.DEFAULT_CLOSE,
                closed=False,
            )
            for day_id, label in OpeningHours.Weekday.choices
        ])
        return True


class ReservationQuerySet(models.QuerySet):
    def for_date(self, day):
        return self.filter(date=day)

    def pending(self):
        return self.filter(status=Reservation.Status.PENDING)

    def upcoming(self, today):
        return self.filter(date__gte=today).order_by("date", "time")


class MenuItemManager(models.Manager):
    """Public menu only lists active dishes."""
    def active(self):
        return self.filter(active=True)


# =============================================================================
# === OPENING HOURS ===========================================================
# =============================================================================

class OpeningHours(models.Model):
    """One row per weekday, keyed by the lowercase weekday name."""

    class Weekday(models.TextChoices):
        MONDAY = 'monday', 'Monday'
        TUESDAY = 'tuesday', 'Tuesday'
        WEDNESDAY = 'wednesday', 'Wednesday'
        THURSDAY = 'thursday', 'Thursday'
        FRIDAY = 'friday', 'Friday'
        SATURDAY = 'saturday', 'Saturday'
        SUNDAY = 'sunday', 'Sunday'

    DEFAULT_OPEN = time(9, 0)
    DEFAULT_CLOSE = time(22, 0)

    id = models.CharField(primary_key=True, max_length=10, choices=Weekday.choices)
    day = models.CharField(max_length=20)
    open = models.TimeField(default=DEFAULT_OPEN)
    close = models.TimeField(default=DEFAULT_CLOSE)
    closed = models.BooleanField(default=False)

    objects = OpeningHoursManager()

    class Meta:
        verbose_name = "Opening hours"
        verbose_name_plural = "Opening hours"

    def __str__(self):
        if self.closed:
            return f"{self.day}: closed"
        return f"{self.day}: {self.open:%H:%M}-{self.close:%H:%M}"

    @classmethod
    def week_order(cls):
        """Ordering expression: Monday first, Sunday last."""
        return models.Case(
            *[models.When(id=day_id, then=models.Value(index))
              for index, day_id in enumerate(cls.Weekday.values)],
            output_field=models.IntegerField(),
        )

    @property
    def sort_key(self):
        return list(self.Weekday.values).index(self.id)


# =============================================================================
# === SYSTEM SETTINGS =========================================================
# =============================================================================

class SystemSetting(models.Model):
    """
    Key/value configuration edited by staff from the settings tab.

    Values are stored as text; `dining.availability.ReservationSettings`
    parses the reservation-related keys once per computation.
    """

    class Key(models.TextChoices):
        TOTAL_TABLES = 'total_tables', 'Total tables'
        SEATS_PER_TABLE = 'seats_per_table', 'Seats per table'
        RESERVATION_DURATION = 'reservation_duration', 'Reservation duration'
        TIME_SLOT_INTERVAL = 'time_slot_interval', 'Time slot interval'
        MIN_RESERVATION_NOTICE = 'min_reservation_notice', 'Minimum reservation notice'

    key = models.CharField(max_length=64, unique=True)
    value = models.CharField(max_length=255)
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self):
        return f"{self.key}={self.value}"


# =============================================================================
# === MENU ====================================================================
# =============================================================================

class MenuItem(models.Model):
    """A dish or drink shown on the public menu."""

    class Category(models.TextChoices):
        STARTERS = 'starters', 'Starters'
        MAIN = 'main', 'Main Courses'
        DESSERTS = 'desserts', 'Desserts'
        DRINKS = 'drinks', 'Drinks'

    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=8, decimal_places=2, validators=[MinValueValidator(0)]
    )
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.MAIN)
    active = models.BooleanField(default=True)
    image = models.ImageField(upload_to="menu/", null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MenuItemManager()

    class Meta:
        ordering = ["category", "name"]

    def __str__(self):
        return f"{self.name} ({self.get_category_display()})"


# =============================================================================
# === RESERVATIONS ============================================================
# =============================================================================

class Reservation(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'

    date = models.DateField(db_index=True)
    # Wall-clock HH:MM at the venue. Kept as text: rows written by older
    # clients may hold values the availability code has to tolerate.
    time = models.CharField(max_length=8, blank=True)
    name = models.CharField(max_length=120)
    email = models.EmailField()
    phone = models.CharField(max_length=30, blank=True, null=True)
    guests = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    special_requests = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        ordering = ["date", "time"]
        indexes = [
            models.Index(fields=["date", "time"], name="reservation_date_time_idx"),
        ]

    def __str__(self):
        return f"{self.name} - {self.date} {self.time} ({self.guests})"

    def get_absolute_url(self):
        return f"{reverse('dining:dashboard')}?date={self.date:%Y-%m-%d}"

    @property
    def is_confirmed(self) -> bool:
        return self.status == self.Status.CONFIRMED

    def next_status(self):
        """The status a staff toggle moves this reservation to."""
        if self.is_confirmed:
            return self.Status.PENDING
        return self.Status.CONFIRMED
