from datetime import date, datetime, time, timedelta
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from . import notifications, services
from .availability import (
    ReservationSettings,
    admin_availability,
    compute_availability,
    generate_slot_times,
    occupancy_interval,
    overlaps,
    parse_clock,
    public_availability,
    tables_in_use,
)
from .forms import format_phone
from .models import MenuItem, OpeningHours, Reservation, SystemSetting

User = get_user_model()

SUNDAY = date(2025, 6, 1)


def open_hours(opens=time(9, 0), closes=time(22, 0), closed=False):
    return SimpleNamespace(open=opens, close=closes, closed=closed)


def booking(at, day=SUNDAY):
    return SimpleNamespace(pk=None, date=day, time=at)


def future_day(days=30):
    return timezone.localdate() + timedelta(days=days)


def guest_data(**overrides):
    data = {
        "name": "Anna Gruber",
        "email": "anna@example.com",
        "phone": "",
        "guests": "2",
        "special_requests": "",
    }
    data.update(overrides)
    return data


# ==============================================================================
# AVAILABILITY (pure)
# ==============================================================================

class SlotGenerationTests(SimpleTestCase):
    def test_closed_day_has_no_slots(self):
        hours = open_hours(closed=True)
        self.assertEqual(generate_slot_times(SUNDAY, hours, ReservationSettings()), [])
        self.assertEqual(compute_availability(SUNDAY, hours, ReservationSettings(), []), [])

    def test_missing_hours_entry_has_no_slots(self):
        self.assertEqual(generate_slot_times(SUNDAY, None, ReservationSettings()), [])

    def test_slots_start_at_open_and_step_by_interval(self):
        for interval in (15, 30, 45, 60):
            settings_ = ReservationSettings(time_slot_interval=interval)
            slots = generate_slot_times(SUNDAY, open_hours(), settings_)
            self.assertEqual(slots[0], datetime(2025, 6, 1, 9, 0))
            for earlier, later in zip(slots, slots[1:]):
                self.assertEqual(later - earlier, timedelta(minutes=interval))
            self.assertLess(slots[-1], datetime(2025, 6, 1, 22, 0))

    def test_default_day_has_twenty_six_half_hour_slots(self):
        slots = generate_slot_times(SUNDAY, open_hours(), ReservationSettings())
        self.assertEqual(len(slots), 26)
        self.assertEqual(slots[-1].time(), time(21, 30))

    def test_window_crossing_midnight_yields_nothing(self):
        hours = open_hours(opens=time(18, 0), closes=time(1, 0))
        self.assertEqual(generate_slot_times(SUNDAY, hours, ReservationSettings()), [])

    def test_text_opening_hours_are_accepted(self):
        hours = open_hours(opens="17:00", closes="18:00")
        slots = generate_slot_times(SUNDAY, hours, ReservationSettings())
        self.assertEqual([s.time() for s in slots], [time(17, 0), time(17, 30)])


class OverlapTests(SimpleTestCase):
    def setUp(self):
        self.config = ReservationSettings(total_tables=2)

    def test_half_open_intervals(self):
        t = datetime(2025, 6, 1, 19, 0)
        hour = timedelta(hours=1)
        self.assertTrue(overlaps(t, t + hour, t, t + hour))
        self.assertFalse(overlaps(t, t + hour, t + hour, t + 2 * hour))
        self.assertFalse(overlaps(t + hour, t + 2 * hour, t, t + hour))

    def test_exact_same_interval_counts(self):
        intervals = [occupancy_interval(booking("19:00"), self.config)]
        self.assertEqual(tables_in_use(datetime(2025, 6, 1, 19, 0), intervals, self.config), 1)

    def test_reservation_ending_at_slot_start_does_not_count(self):
        intervals = [occupancy_interval(booking("17:00"), self.config)]
        self.assertEqual(tables_in_use(datetime(2025, 6, 1, 19, 0), intervals, self.config), 0)

    def test_partial_overlap_counts(self):
        intervals = [occupancy_interval(booking("18:30"), self.config)]
        self.assertEqual(tables_in_use(datetime(2025, 6, 1, 17, 0), intervals, self.config), 1)
        self.assertEqual(tables_in_use(datetime(2025, 6, 1, 20, 0), intervals, self.config), 1)

    def test_guest_count_does_not_matter(self):
        big = SimpleNamespace(pk=1, date=SUNDAY, time="19:00", guests=12)
        intervals = [occupancy_interval(big, self.config)]
        self.assertEqual(tables_in_use(datetime(2025, 6, 1, 19, 0), intervals, self.config), 1)


class CapacityTests(SimpleTestCase):
    def slot_at(self, slots, label):
        return next(slot for slot in slots if slot.time == label)

    def test_two_tables_two_overlaps_is_full(self):
        settings_ = ReservationSettings(total_tables=2)
        slots = admin_availability(SUNDAY, open_hours(), settings_, [booking("19:00"), booking("19:00")])
        slot = self.slot_at(slots, "19:00")
        self.assertFalse(slot.available)
        self.assertEqual(slot.tables_remaining, 0)

    def test_two_tables_one_overlap_leaves_one(self):
        settings_ = ReservationSettings(total_tables=2)
        slots = admin_availability(SUNDAY, open_hours(), settings_, [booking("19:00")])
        slot = self.slot_at(slots, "19:00")
        self.assertTrue(slot.available)
        self.assertEqual(slot.tables_remaining, 1)
        self.assertEqual(slot.total_tables, 2)

    def test_overbooked_day_never_reports_negative_remaining(self):
        settings_ = ReservationSettings(total_tables=1)
        slots = admin_availability(SUNDAY, open_hours(), settings_, [booking("19:00")] * 3)
        self.assertEqual(self.slot_at(slots, "19:00").tables_remaining, 0)

    def test_malformed_times_fall_back_to_midnight(self):
        settings_ = ReservationSettings()
        for bad in ("", None, "7pm", "25:99"):
            start, end = occupancy_interval(booking(bad), settings_)
            self.assertEqual(start, datetime(2025, 6, 1, 0, 0))
            self.assertEqual(end - start, timedelta(minutes=120))

    def test_malformed_reservation_blocks_only_early_slots(self):
        settings_ = ReservationSettings(total_tables=1)
        hours = open_hours(opens=time(0, 0), closes=time(4, 0))
        slots = admin_availability(SUNDAY, hours, settings_, [booking("garbage")])
        self.assertFalse(self.slot_at(slots, "00:00").available)
        self.assertTrue(self.slot_at(slots, "02:00").available)


class NoticeWindowTests(SimpleTestCase):
    def test_public_flow_hides_slot_inside_notice_window(self):
        settings_ = ReservationSettings(min_reservation_notice=60)
        now = datetime(2025, 6, 1, 18, 30)
        public = public_availability(SUNDAY, open_hours(), settings_, [], now=now)
        admin = admin_availability(SUNDAY, open_hours(), settings_, [])

        self.assertFalse(next(s for s in public if s.time == "19:00").available)
        self.assertTrue(next(s for s in admin if s.time == "19:00").available)

    def test_slot_exactly_at_notice_boundary_is_available(self):
        settings_ = ReservationSettings(min_reservation_notice=60)
        now = datetime(2025, 6, 1, 18, 0)
        public = public_availability(SUNDAY, open_hours(), settings_, [], now=now)
        self.assertTrue(next(s for s in public if s.time == "19:00").available)

    def test_notice_window_keeps_remaining_capacity(self):
        settings_ = ReservationSettings(total_tables=3, min_reservation_notice=60)
        now = datetime(2025, 6, 1, 18, 30)
        slots = public_availability(SUNDAY, open_hours(), settings_, [booking("19:00")], now=now)
        slot = next(s for s in slots if s.time == "19:00")
        self.assertFalse(slot.available)
        self.assertEqual(slot.tables_remaining, 2)


class ReservationSettingsTests(SimpleTestCase):
    def test_defaults(self):
        parsed = ReservationSettings.from_rows([])
        self.assertEqual(parsed, ReservationSettings(10, 4, 120, 30, 60))

    def test_values_are_parsed_once_into_integers(self):
        parsed = ReservationSettings.from_rows([
            ("total_tables", "6"),
            ("reservation_duration", " 90 "),
            ("min_reservation_notice", "0"),
        ])
        self.assertEqual(parsed.total_tables, 6)
        self.assertEqual(parsed.duration, timedelta(minutes=90))
        self.assertEqual(parsed.min_reservation_notice, 0)

    def test_bad_values_fall_back_to_defaults(self):
        parsed = ReservationSettings.from_rows([
            ("total_tables", "many"),
            ("time_slot_interval", "0"),
            ("reservation_duration", "-30"),
        ])
        self.assertEqual(parsed.total_tables, 10)
        self.assertEqual(parsed.time_slot_interval, 30)
        self.assertEqual(parsed.reservation_duration, 120)

    def test_legacy_seats_key(self):
        parsed = ReservationSettings.from_rows([("max_guests_per_table", "6")])
        self.assertEqual(parsed.seats_per_table, 6)
        parsed = ReservationSettings.from_rows([("max_guests_per_table", "6"), ("seats_per_table", "8")])
        self.assertEqual(parsed.seats_per_table, 8)

    def test_parse_clock(self):
        self.assertEqual(parse_clock("19:00"), time(19, 0))
        self.assertEqual(parse_clock("19:00:00"), time(19, 0))
        self.assertIsNone(parse_clock("19h"))
        self.assertIsNone(parse_clock(None))


class PhoneFormatTests(SimpleTestCase):
    def test_groups_digits(self):
        self.assertEqual(format_phone("+43 1234567890"), "+43 123 456 7890")
        self.assertEqual(format_phone("(43) 123-456"), "+43 123 456")
        self.assertEqual(format_phone("4312"), "+43 12")

    def test_drops_extra_digits_and_empty_input(self):
        self.assertEqual(format_phone("43123456789012"), "+43 123 456 7890")
        self.assertEqual(format_phone(""), "")
        self.assertEqual(format_phone("abc"), "")


# ==============================================================================
# SERVICES
# ==============================================================================

@override_settings(NOTIFICATIONS_ASYNC=False)
class ReservationSubmissionTests(TestCase):
    def payload(self, **overrides):
        data = {
            "name": "Anna Gruber",
            "email": "anna@example.com",
            "date": "2025-06-01",
            "time": "19:00",
            "guests": 2,
        }
        data.update(overrides)
        return data

    def test_round_trip_stores_pending_and_sends_two_emails(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            reservation = services.submit_reservation(self.payload())

        stored = Reservation.objects.get(pk=reservation.pk)
        self.assertEqual(stored.status, Reservation.Status.PENDING)
        self.assertEqual(stored.date, SUNDAY)
        self.assertEqual(stored.time, "19:00")
        self.assertEqual(stored.guests, 2)
        self.assertIsNone(stored.phone)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 2)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, sorted(["anna@example.com", settings.RESTAURANT_EMAIL]))
        guest_mail = next(m for m in mail.outbox if m.to == ["anna@example.com"])
        self.assertIn("Sunday, June 1, 2025", guest_mail.body)
        self.assertEqual(guest_mail.alternatives[0][1], "text/html")

    def test_store_failure_sends_nothing(self):
        with mock.patch.object(Reservation.objects, "create", side_effect=DatabaseError("down")):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(services.ReservationError):
                    services.submit_reservation(self.payload())

        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])
        self.assertFalse(Reservation.objects.exists())

    def test_email_failure_does_not_affect_booking(self):
        with mock.patch("dining.notifications.EmailMultiAlternatives.send", side_effect=OSError("smtp down")):
            with self.captureOnCommitCallbacks(execute=True):
                reservation = services.submit_reservation(self.payload())
        self.assertTrue(Reservation.objects.filter(pk=reservation.pk).exists())

    def test_required_fields_and_email_shape(self):
        with self.assertRaises(services.ReservationValidationError) as ctx:
            services.submit_reservation({"email": "not-an-email", "name": "  "})
        errors = ctx.exception.errors
        for field in ("name", "date", "time", "guests", "email"):
            self.assertIn(field, errors)
        self.assertFalse(Reservation.objects.exists())

    def test_time_is_normalised(self):
        cleaned = services.validate_reservation(self.payload(time="19:00:00", phone=" ", special_requests="Window"))
        self.assertEqual(cleaned["time"], "19:00")
        self.assertIsNone(cleaned["phone"])
        self.assertEqual(cleaned["special_requests"], "Window")

    def test_no_capacity_recheck_at_submission(self):
        SystemSetting.objects.create(key="total_tables", value="1")
        services.submit_reservation(self.payload())
        services.submit_reservation(self.payload(name="Ben Berger", email="ben@example.com"))
        self.assertEqual(Reservation.objects.filter(date=SUNDAY, time="19:00").count(), 2)

    def test_manual_booking_is_confirmed_and_silent(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            reservation = services.create_manual_reservation(self.payload())
        self.assertEqual(reservation.status, Reservation.Status.CONFIRMED)
        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])


@override_settings(NOTIFICATIONS_ASYNC=False)
class StaffTransitionTests(TestCase):
    def setUp(self):
        self.reservation = Reservation.objects.create(
            date=SUNDAY, time="19:00", name="Anna", email="anna@example.com", guests=2,
            status=Reservation.Status.CONFIRMED,
        )

    def test_toggle_twice_is_identity(self):
        first = services.toggle_reservation_status(self.reservation.pk)
        self.assertEqual(first.status, Reservation.Status.PENDING)
        second = services.toggle_reservation_status(self.reservation.pk)
        self.assertEqual(second.status, Reservation.Status.CONFIRMED)

        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.CONFIRMED)
        self.assertEqual(self.reservation.guests, 2)
        self.assertEqual(mail.outbox, [])

    def test_delete(self):
        services.delete_reservation(self.reservation.pk)
        self.assertFalse(Reservation.objects.exists())

    def test_confirm_and_notify(self):
        self.reservation.status = Reservation.Status.PENDING
        self.reservation.save()
        with self.captureOnCommitCallbacks(execute=True):
            count = services.confirm_and_notify([self.reservation])
        self.assertEqual(count, 1)
        self.reservation.refresh_from_db()
        self.assertTrue(self.reservation.is_confirmed)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["anna@example.com"])
        self.assertIn("confirmed", mail.outbox[0].subject)

    def test_decline_and_notify_deletes(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.decline_and_notify(Reservation.objects.all())
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("cannot accommodate", mail.outbox[0].body)


class StoreTests(TestCase):
    def test_opening_hours_seeded_once(self):
        hours = services.load_opening_hours()
        self.assertEqual(len(hours), 7)
        self.assertEqual(hours["monday"].open, time(9, 0))
        self.assertEqual(hours["monday"].close, time(22, 0))

        services.update_opening_hours("monday", closed=True)
        services.load_opening_hours()
        self.assertEqual(OpeningHours.objects.count(), 7)
        self.assertTrue(OpeningHours.objects.get(pk="monday").closed)

    def test_week_order(self):
        services.load_opening_hours()
        ids = list(OpeningHours.objects.in_week_order().values_list("id", flat=True))
        self.assertEqual(ids, OpeningHours.Weekday.values)

    def test_closed_day_gives_no_public_slots(self):
        services.load_opening_hours()
        services.update_opening_hours("sunday", closed=True)
        self.assertTrue(services.is_closed(SUNDAY))
        self.assertEqual(services.public_time_slots(SUNDAY, now=datetime(2025, 5, 1, 12, 0)), [])
        self.assertEqual(services.admin_time_slots(SUNDAY), [])

    def test_missing_weekday_row_means_closed(self):
        services.load_opening_hours()
        OpeningHours.objects.filter(pk="sunday").delete()
        self.assertTrue(services.is_closed(SUNDAY))

    def test_settings_come_from_rows(self):
        setting = SystemSetting.objects.create(key="total_tables", value="3")
        self.assertEqual(services.load_reservation_settings().total_tables, 3)
        services.update_setting(setting.pk, "5")
        self.assertEqual(services.load_reservation_settings().total_tables, 5)

    def test_public_slots_use_stored_reservations(self):
        SystemSetting.objects.create(key="total_tables", value="1")
        Reservation.objects.create(date=SUNDAY, time="19:00", name="A", email="a@example.com", guests=2)
        slots = services.public_time_slots(SUNDAY, now=datetime(2025, 5, 1, 12, 0))
        by_time = {slot.time: slot for slot in slots}
        self.assertFalse(by_time["19:00"].available)
        self.assertFalse(by_time["20:30"].available)
        self.assertTrue(by_time["21:00"].available)
        self.assertTrue(by_time["17:00"].available)

    def test_menu_filters_and_toggle(self):
        soup = MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters")
        MenuItem.objects.create(name="Cake", price=Decimal("5.00"), category="desserts", active=False)
        self.assertEqual(list(services.filter_menu_items("starters")), [soup])
        self.assertEqual(services.filter_menu_items(status="inactive").get().name, "Cake")
        self.assertEqual(services.filter_menu_items(search="sou").get(), soup)

        services.toggle_menu_item(soup.pk)
        soup.refresh_from_db()
        self.assertFalse(soup.active)

    def test_dashboard_stats(self):
        today = date(2025, 6, 1)
        Reservation.objects.create(date=today, time="12:00", name="A", email="a@example.com", guests=1)
        Reservation.objects.create(date=today + timedelta(days=1), time="12:00", name="B",
                                   email="b@example.com", guests=1, status=Reservation.Status.CONFIRMED)
        stats = services.dashboard_stats(today=today)
        self.assertEqual(stats["today_count"], 1)
        self.assertEqual(stats["pending_count"], 1)
        self.assertEqual(stats["total_tables"], "—")
        self.assertEqual(len(stats["upcoming"]), 2)


class NotificationDispatchTests(SimpleTestCase):
    def test_unknown_kind_is_rejected(self):
        with self.assertRaises(ValueError):
            notifications.dispatch("cancelled", {"name": "A", "email": "a@example.com"})

    @override_settings(NOTIFICATIONS_ASYNC=True)
    def test_async_dispatch_goes_to_worker(self):
        with mock.patch.object(notifications._executor, "submit") as submit:
            notifications.dispatch("confirmed", {"name": "A", "email": "a@example.com"})
        submit.assert_called_once_with(
            notifications.send_notification, "confirmed", {"name": "A", "email": "a@example.com"}
        )

    def test_render_failure_is_swallowed(self):
        with mock.patch("dining.notifications.build_messages", side_effect=KeyError("email")):
            self.assertEqual(notifications.send_notification("received", {}), 0)


# ==============================================================================
# PUBLIC PAGES & WIZARD
# ==============================================================================

class PublicPageTests(TestCase):
    def test_static_pages(self):
        for name in ("home", "menu", "about", "contact", "legal", "privacy", "terms"):
            response = self.client.get(reverse(f"dining:{name}"))
            self.assertEqual(response.status_code, 200, name)

    def test_home_shows_three_newest_active_dishes(self):
        for index in range(4):
            MenuItem.objects.create(name=f"Dish {index}", price=Decimal("10.00"))
        MenuItem.objects.create(name="Hidden Dish", price=Decimal("10.00"), active=False)
        response = self.client.get(reverse("dining:home"))
        self.assertEqual(len(response.context["featured_dishes"]), 3)
        self.assertNotContains(response, "Hidden Dish")
        self.assertEqual(len(response.context["opening_hours"]), 7)

    def test_menu_category_filter(self):
        MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters")
        MenuItem.objects.create(name="Lemonade", price=Decimal("3.50"), category="drinks")
        response = self.client.get(reverse("dining:menu"), {"category": "drinks"})
        self.assertContains(response, "Lemonade")
        self.assertNotContains(response, "Soup")

    def test_menu_shows_dish_image(self):
        MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters", image="menu/soup.jpg")
        MenuItem.objects.create(name="Lemonade", price=Decimal("3.50"), category="drinks")
        response = self.client.get(reverse("dining:menu"))
        self.assertContains(response, '<img src="/media/menu/soup.jpg"', count=1)


@override_settings(NOTIFICATIONS_ASYNC=False)
class ReservationWizardTests(TestCase):
    def setUp(self):
        self.day = future_day()

    def test_date_step_redirects_to_time_step(self):
        response = self.client.post(reverse("dining:reservations"), {"date": self.day.isoformat()})
        self.assertRedirects(response, reverse("dining:reservation-time", args=[self.day.isoformat()]))

    def test_past_date_is_rejected(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        response = self.client.post(reverse("dining:reservations"), {"date": yesterday.isoformat()})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context["form"].errors)

        response = self.client.get(reverse("dining:reservation-time", args=[yesterday.isoformat()]))
        self.assertRedirects(response, reverse("dining:reservations"))

    def test_closed_weekday_is_rejected(self):
        services.load_opening_hours()
        services.update_opening_hours(services.weekday_key(self.day), closed=True)
        response = self.client.post(reverse("dining:reservations"), {"date": self.day.isoformat()})
        self.assertEqual(response.status_code, 200)
        self.assertIn("closed", str(response.context["form"].errors))

    def test_weekday_without_hours_row_is_rejected(self):
        services.load_opening_hours()
        OpeningHours.objects.filter(pk=services.weekday_key(self.day)).delete()
        response = self.client.post(reverse("dining:reservations"), {"date": self.day.isoformat()})
        self.assertEqual(response.status_code, 200)
        self.assertIn("closed", str(response.context["form"].errors))

        other_day = self.day + timedelta(days=1)
        response = self.client.post(reverse("dining:reservations"), {"date": other_day.isoformat()})
        self.assertEqual(response.status_code, 302)

    def test_time_step_labels_scarce_and_full_slots(self):
        SystemSetting.objects.create(key="total_tables", value="1")
        Reservation.objects.create(date=self.day, time="19:00", name="A", email="a@example.com")
        response = self.client.get(reverse("dining:reservation-time", args=[self.day.isoformat()]))
        self.assertContains(response, "Fully booked")
        self.assertContains(response, "Only 1 table left!")
        self.assertNotContains(response, "Unavailable")

    def test_time_step_lists_slots(self):
        response = self.client.get(reverse("dining:reservation-time", args=[self.day.isoformat()]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context["slots"]), 26)
        self.assertTrue(response.context["has_available"])
        self.assertContains(response, "10 of 10 tables left")

    def test_time_step_survives_store_failure(self):
        with mock.patch("dining.services.public_time_slots", side_effect=DatabaseError("down")):
            response = self.client.get(reverse("dining:reservation-time", args=[self.day.isoformat()]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["slots"], [])
        self.assertContains(response, "Something went wrong")

    def test_full_flow(self):
        url = reverse("dining:reservation-details", args=[self.day.isoformat(), "19:00"])
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(url, guest_data(phone="0043 1234567890", special_requests="Window seat"))
        self.assertRedirects(response, reverse("dining:reservation-confirmed"), fetch_redirect_response=False)

        reservation = Reservation.objects.get()
        self.assertEqual(reservation.status, Reservation.Status.PENDING)
        self.assertEqual(reservation.date, self.day)
        self.assertEqual(reservation.time, "19:00")
        self.assertEqual(reservation.guests, 2)
        self.assertEqual(reservation.special_requests, "Window seat")
        self.assertEqual(len(mail.outbox), 2)

        response = self.client.get(reverse("dining:reservation-confirmed"))
        self.assertContains(response, "Anna Gruber")
        self.assertContains(response, "Window seat")

        response = self.client.get(reverse("dining:reservation-confirmed"))
        self.assertRedirects(response, reverse("dining:reservations"))

    def test_invalid_email_blocks_submission(self):
        url = reverse("dining:reservation-details", args=[self.day.isoformat(), "19:00"])
        response = self.client.post(url, guest_data(email="anna@example"))
        self.assertEqual(response.status_code, 200)
        self.assertIn("email", response.context["form"].errors)
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(mail.outbox, [])

    def test_guests_limited_to_table_size(self):
        url = reverse("dining:reservation-details", args=[self.day.isoformat(), "19:00"])
        response = self.client.post(url, guest_data(guests="9"))
        self.assertIn("guests", response.context["form"].errors)

    def test_malformed_time_in_url(self):
        url = reverse("dining:reservation-details", args=[self.day.isoformat(), "late"])
        self.assertRedirects(self.client.get(url), reverse("dining:reservations"))


# ==============================================================================
# JSON API
# ==============================================================================

class ApiTests(TestCase):
    def test_availability(self):
        day = future_day()
        response = self.client.get(reverse("dining:api-availability"), {"date": day.isoformat()})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["date"], day.isoformat())
        self.assertFalse(body["closed"])
        self.assertEqual(body["slots"][0], {
            "time": "09:00", "available": True, "tables_remaining": 10, "total_tables": 10,
        })

    def test_availability_closed_day(self):
        day = future_day()
        services.load_opening_hours()
        services.update_opening_hours(services.weekday_key(day), closed=True)
        body = self.client.get(reverse("dining:api-availability"), {"date": day.isoformat()}).json()
        self.assertTrue(body["closed"])
        self.assertEqual(body["slots"], [])

    def test_availability_requires_date(self):
        response = self.client.get(reverse("dining:api-availability"))
        self.assertEqual(response.status_code, 400)

    def test_opening_hours(self):
        response = self.client.get("/api/v1/opening-hours/")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body), 7)
        self.assertEqual(body[0], {"id": "monday", "day": "Monday", "open": "09:00", "close": "22:00", "closed": False})


# ==============================================================================
# STAFF DASHBOARD
# ==============================================================================

class DashboardAccessTests(TestCase):
    def test_anonymous_is_sent_to_login(self):
        response = self.client.get(reverse("dining:dashboard"))
        self.assertRedirects(response, f"{reverse('dining:login')}?next={reverse('dining:dashboard')}")

    def test_non_staff_is_forbidden(self):
        User.objects.create_user(username="guest", password="password123")
        self.client.login(username="guest", password="password123")
        self.assertEqual(self.client.get(reverse("dining:dashboard")).status_code, 403)

    def test_anonymous_cannot_toggle(self):
        reservation = Reservation.objects.create(date=SUNDAY, time="19:00", name="A", email="a@example.com")
        response = self.client.post(reverse("dining:reservation-toggle", args=[reservation.pk]))
        self.assertEqual(response.status_code, 302)
        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.PENDING)

    def test_staff_login(self):
        User.objects.create_user(username="staff", password="password123", is_staff=True)
        response = self.client.post(reverse("dining:login"), {"username": "staff", "password": "password123"})
        self.assertRedirects(response, reverse("dining:dashboard"))


@override_settings(NOTIFICATIONS_ASYNC=False)
class DashboardTests(TestCase):
    def setUp(self):
        self.staff = User.objects.create_user(username="staff", password="password123", is_staff=True)
        self.client.login(username="staff", password="password123")
        self.day = future_day()

    def test_every_tab_renders(self):
        for tab in ("reservations", "menu", "hours", "settings"):
            response = self.client.get(reverse("dining:dashboard"), {"tab": tab})
            self.assertEqual(response.status_code, 200, tab)
            self.assertEqual(response.context["tab"], tab)

    def test_reservations_tab_for_selected_date(self):
        Reservation.objects.create(date=self.day, time="19:00", name="Clara Huber", email="c@example.com")
        response = self.client.get(reverse("dining:dashboard"), {"date": self.day.isoformat()})
        self.assertContains(response, "Clara Huber")
        self.assertEqual(response.context["selected_date"], self.day)
        self.assertEqual(len(response.context["slots"]), 26)

    def test_manual_booking(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(reverse("dining:reservation-create"), {
                "date": self.day.isoformat(), "time": "19:00",
                "name": "Walk In", "email": "walkin@example.com", "guests": "3",
            })
        self.assertRedirects(
            response, f"{reverse('dining:dashboard')}?tab=reservations&date={self.day.isoformat()}",
            fetch_redirect_response=False,
        )
        reservation = Reservation.objects.get()
        self.assertEqual(reservation.status, Reservation.Status.CONFIRMED)
        self.assertEqual(reservation.guests, 3)
        self.assertEqual(mail.outbox, [])

    def test_manual_booking_ignores_notice_window(self):
        SystemSetting.objects.create(key="min_reservation_notice", value="100000")
        self.client.post(reverse("dining:reservation-create"), {
            "date": self.day.isoformat(), "time": "19:00",
            "name": "Walk In", "email": "walkin@example.com", "guests": "2",
        })
        self.assertTrue(Reservation.objects.exists())

    def test_manual_booking_rejects_full_slot(self):
        SystemSetting.objects.create(key="total_tables", value="1")
        Reservation.objects.create(date=self.day, time="19:00", name="A", email="a@example.com")
        self.client.post(reverse("dining:reservation-create"), {
            "date": self.day.isoformat(), "time": "19:00",
            "name": "Walk In", "email": "walkin@example.com", "guests": "2",
        })
        self.assertEqual(Reservation.objects.count(), 1)

    def test_toggle_and_delete(self):
        reservation = Reservation.objects.create(date=self.day, time="19:00", name="A", email="a@example.com")
        self.client.post(reverse("dining:reservation-toggle", args=[reservation.pk]))
        reservation.refresh_from_db()
        self.assertTrue(reservation.is_confirmed)
        self.assertEqual(mail.outbox, [])

        self.client.post(reverse("dining:reservation-delete", args=[reservation.pk]))
        self.assertFalse(Reservation.objects.exists())

    def test_toggle_requires_post(self):
        reservation = Reservation.objects.create(date=self.day, time="19:00", name="A", email="a@example.com")
        response = self.client.get(reverse("dining:reservation-toggle", args=[reservation.pk]))
        self.assertEqual(response.status_code, 405)

    def test_menu_crud(self):
        self.client.post(reverse("dining:menu-create"), {
            "name": "Goulash", "description": "Beef stew", "price": "16.90",
            "category": "main", "active": "on",
        })
        item = MenuItem.objects.get(name="Goulash")
        self.assertTrue(item.active)

        prefix = f"menu-{item.pk}"
        self.client.post(reverse("dining:menu-update", args=[item.pk]), {
            f"{prefix}-name": "Goulash", f"{prefix}-description": "Beef stew with dumplings",
            f"{prefix}-price": "17.90", f"{prefix}-category": "main", f"{prefix}-active": "on",
        })
        item.refresh_from_db()
        self.assertEqual(item.price, Decimal("17.90"))

        self.client.post(reverse("dining:menu-toggle", args=[item.pk]))
        item.refresh_from_db()
        self.assertFalse(item.active)

        self.client.post(reverse("dining:menu-delete", args=[item.pk]))
        self.assertFalse(MenuItem.objects.exists())

    def test_menu_tab_offers_edit_form_per_item(self):
        item = MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters", image="menu/soup.jpg")
        response = self.client.get(reverse("dining:dashboard"), {"tab": "menu"})
        self.assertContains(response, f'action="{reverse("dining:menu-update", args=[item.pk])}"')
        self.assertContains(response, f'name="menu-{item.pk}-price"')
        self.assertContains(response, 'src="/media/menu/soup.jpg"')
        [(row_item, edit_form)] = response.context["menu_rows"]
        self.assertEqual(row_item, item)
        self.assertEqual(edit_form.instance, item)

    def test_menu_update_rejects_invalid_price(self):
        item = MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters")
        prefix = f"menu-{item.pk}"
        self.client.post(reverse("dining:menu-update", args=[item.pk]), {
            f"{prefix}-name": "Soup", f"{prefix}-price": "-1", f"{prefix}-category": "starters",
        })
        item.refresh_from_db()
        self.assertEqual(item.price, Decimal("7.50"))

    def test_menu_tab_filters(self):
        MenuItem.objects.create(name="Soup", price=Decimal("7.50"), category="starters")
        MenuItem.objects.create(name="Cake", price=Decimal("5.00"), category="desserts")
        response = self.client.get(reverse("dining:dashboard"), {"tab": "menu", "category": "desserts"})
        self.assertEqual([item.name for item in response.context["menu_items"]], ["Cake"])

    def hours_post(self, **overrides):
        services.load_opening_hours()
        data = {"form-TOTAL_FORMS": "7", "form-INITIAL_FORMS": "7"}
        for index, hours in enumerate(OpeningHours.objects.in_week_order()):
            data[f"form-{index}-id"] = hours.pk
            data[f"form-{index}-open"] = "09:00"
            data[f"form-{index}-close"] = "22:00"
        data.update(overrides)
        return data

    def test_hours_update(self):
        data = self.hours_post(**{"form-6-closed": "on", "form-0-open": "11:00"})
        response = self.client.post(reverse("dining:hours-update"), data)
        self.assertEqual(response.status_code, 302)
        self.assertTrue(OpeningHours.objects.get(pk="sunday").closed)
        self.assertEqual(OpeningHours.objects.get(pk="monday").open, time(11, 0))

    def test_hours_update_rejects_close_before_open(self):
        data = self.hours_post(**{"form-0-close": "08:00"})
        self.client.post(reverse("dining:hours-update"), data)
        self.assertEqual(OpeningHours.objects.get(pk="monday").close, time(22, 0))

    def test_setting_update(self):
        setting = SystemSetting.objects.create(key="total_tables", value="10")
        self.client.post(reverse("dining:setting-update", args=[setting.pk]), {f"setting-{setting.pk}-value": "12"})
        setting.refresh_from_db()
        self.assertEqual(setting.value, "12")

        self.client.post(reverse("dining:setting-update", args=[setting.pk]), {f"setting-{setting.pk}-value": "twelve"})
        setting.refresh_from_db()
        self.assertEqual(setting.value, "12")


# ==============================================================================
# DJANGO ADMIN & MANAGEMENT COMMAND
# ==============================================================================

@override_settings(NOTIFICATIONS_ASYNC=False)
class AdminActionTests(TestCase):
    def setUp(self):
        User.objects.create_superuser(username="admin", password="password123", email="admin@example.com")
        self.client.login(username="admin", password="password123")
        self.reservation = Reservation.objects.create(
            date=SUNDAY, time="19:00", name="Anna", email="anna@example.com", guests=2,
        )

    def test_confirm_and_notify_action(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(reverse("admin:dining_reservation_changelist"), {
                "action": "confirm_and_notify",
                "_selected_action": [self.reservation.pk],
            })
        self.reservation.refresh_from_db()
        self.assertTrue(self.reservation.is_confirmed)
        self.assertEqual(len(mail.outbox), 1)

    def test_decline_and_notify_action(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(reverse("admin:dining_reservation_changelist"), {
                "action": "decline_and_notify",
                "_selected_action": [self.reservation.pk],
            })
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(len(mail.outbox), 1)

    def test_csv_export(self):
        response = self.client.post(reverse("admin:dining_reservation_changelist"), {
            "action": "export_selected_to_csv",
            "_selected_action": [self.reservation.pk],
        })
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("anna@example.com", response.content.decode())


class SeedCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_site_data", stdout=StringIO())
        call_command("seed_site_data", stdout=StringIO())
        self.assertEqual(OpeningHours.objects.count(), 7)
        self.assertEqual(SystemSetting.objects.count(), 5)
        self.assertEqual(MenuItem.objects.count(), 9)
        self.assertEqual(services.load_reservation_settings(), ReservationSettings())

    def test_skip_menu(self):
        call_command("seed_site_data", "--skip-menu", stdout=StringIO())
        self.assertFalse(MenuItem.objects.exists())
