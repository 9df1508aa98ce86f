import logging
from datetime import date

from django.contrib import messages
from django.contrib.auth import views as auth_views
from django.db import DatabaseError
from django.shortcuts import redirect
from django.urls import reverse, reverse_lazy
from django.utils import timezone
from django.views.generic import FormView, TemplateView

from . import services
from .availability import parse_clock
from .forms import ReservationDateForm, ReservationDetailsForm
from .models import MenuItem, OpeningHours
from .serializers import human_date

logger = logging.getLogger(__name__)

CONFIRMED_SESSION_KEY = "confirmed_reservation"

GENERIC_ERROR = "Something went wrong while loading data. Please try again later."


# ==============================================================================
# AUTHENTICATION
# ==============================================================================

class LoginView(auth_views.LoginView):
    template_name = 'dining/registration/login.html'
    redirect_authenticated_user = True


class LogoutView(auth_views.LogoutView):
    next_page = reverse_lazy('dining:login')


# ==============================================================================
# PUBLIC PAGES
# ==============================================================================

class HomeView(TemplateView):
    template_name = 'dining/home.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        try:
            context['featured_dishes'] = list(MenuItem.objects.active().order_by('-created_at')[:3])
            context['opening_hours'] = services.ordered_opening_hours()
        except DatabaseError as exc:
            logger.error(f"Home page data unavailable: {exc}")
            context.update(featured_dishes=[], opening_hours=[])
        return context


class MenuView(TemplateView):
    template_name = 'dining/menu.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        active_category = self.request.GET.get('category', 'all')
        try:
            items = list(MenuItem.objects.active())
        except DatabaseError as exc:
            logger.error(f"Menu unavailable: {exc}")
            messages.error(self.request, GENERIC_ERROR)
            items = []

        categories = []
        for item in items:
            if item.category not in categories:
                categories.append(item.category)

        if active_category != 'all':
            items = [item for item in items if item.category == active_category]

        context.update({
            'menu_items': items,
            'categories': [(c, MenuItem.Category(c).label) for c in categories],
            'active_category': active_category,
        })
        return context


class AboutView(TemplateView):
    template_name = 'dining/about.html'


class ContactView(TemplateView):
    template_name = 'dining/contact.html'


class LegalNoticeView(TemplateView):
    template_name = 'dining/legal.html'


class PrivacyPolicyView(TemplateView):
    template_name = 'dining/privacy.html'


class TermsView(TemplateView):
    template_name = 'dining/terms.html'


# ==============================================================================
# RESERVATION WIZARD
# ==============================================================================

class ReservationStepMixin:
    """Shared context for the four wizard steps."""
    step = 1
    steps = [(1, "Date"), (2, "Time"), (3, "Details"), (4, "Confirmed")]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['step'] = self.step
        context['steps'] = self.steps
        return context

    def get_day(self):
        try:
            return date.fromisoformat(self.kwargs['date'])
        except ValueError:
            return None


class ReservationDateView(ReservationStepMixin, FormView):
    """Step 1: calendar."""
    template_name = 'dining/reservations/date.html'
    form_class = ReservationDateForm
    step = 1

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        try:
            hours = services.load_opening_hours()
        except DatabaseError as exc:
            logger.error(f"Opening hours unavailable: {exc}")
            return kwargs
        # A weekday without an opening-hours row counts as closed.
        kwargs['closed_days'] = [
            index for index, day_id in enumerate(OpeningHours.Weekday.values)
            if day_id not in hours or hours[day_id].closed
        ]
        return kwargs

    def form_valid(self, form):
        day = form.cleaned_data['date']
        return redirect('dining:reservation-time', date=day.isoformat())


class ReservationTimeView(ReservationStepMixin, TemplateView):
    """Step 2: slots for the chosen day."""
    template_name = 'dining/reservations/time.html'
    step = 2

    def get(self, request, *args, **kwargs):
        day = self.get_day()
        if day is None or day < timezone.localdate():
            messages.error(request, "Please choose a date in the future.")
            return redirect('dining:reservations')
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        day = self.get_day()
        try:
            slots = services.public_time_slots(day)
        except DatabaseError as exc:
            logger.error(f"Could not compute availability for {day}: {exc}")
            messages.error(self.request, GENERIC_ERROR)
            slots = []
        context.update({
            'day': day,
            'day_label': human_date(day),
            'slots': slots,
            'has_available': any(slot.available for slot in slots),
        })
        return context


class ReservationDetailsView(ReservationStepMixin, FormView):
    """Step 3: guest details, POST stores the booking."""
    template_name = 'dining/reservations/details.html'
    form_class = ReservationDetailsForm
    step = 3

    def dispatch(self, request, *args, **kwargs):
        self.day = self.get_day()
        self.slot_time = parse_clock(kwargs.get('time'))
        if self.day is None or self.slot_time is None or self.day < timezone.localdate():
            messages.error(request, "Please choose a date and time first.")
            return redirect('dining:reservations')
        return super().dispatch(request, *args, **kwargs)

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        try:
            kwargs['seats_per_table'] = services.load_reservation_settings().seats_per_table
        except DatabaseError as exc:
            logger.error(f"Settings unavailable: {exc}")
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update({
            'day': self.day,
            'day_label': human_date(self.day),
            'time': self.slot_time.strftime('%H:%M'),
        })
        return context

    def form_valid(self, form):
        data = dict(form.cleaned_data, date=self.day, time=self.slot_time.strftime('%H:%M'))
        try:
            reservation = services.submit_reservation(data)
        except services.ReservationValidationError as exc:
            for field, message in exc.errors.items():
                form.add_error(field if field in form.fields else None, message)
            return self.form_invalid(form)
        except services.ReservationError as exc:
            messages.error(self.request, f"Error: {exc}")
            return self.form_invalid(form)

        self.request.session[CONFIRMED_SESSION_KEY] = {
            'name': reservation.name,
            'email': reservation.email,
            'phone': reservation.phone or '',
            'guests': reservation.guests,
            'time': reservation.time,
            'date': human_date(reservation.date),
            'notes': reservation.special_requests or '',
        }
        messages.success(self.request, "Your reservation has been submitted successfully!")
        return redirect('dining:reservation-confirmed')


class ReservationConfirmedView(ReservationStepMixin, TemplateView):
    """Step 4: summary of what was just booked."""
    template_name = 'dining/reservations/confirmed.html'
    step = 4

    def get(self, request, *args, **kwargs):
        self.confirmed = request.session.pop(CONFIRMED_SESSION_KEY, None)
        if not self.confirmed:
            return redirect(reverse('dining:reservations'))
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['reservation'] = self.confirmed
        return context
