"""
dining/dashboard.py

Staff dashboard: one page with four tabs (reservations, menu, opening hours,
settings) and the POST endpoints behind each tab's buttons. Every endpoint
redirects back to the tab it came from.
"""

import logging
from datetime import date

from django.contrib import messages
from django.db import DatabaseError
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse
from django.utils import timezone
from django.views.decorators.http import require_POST
from django.views.generic import TemplateView

from . import services
from .forms import (
    ManualReservationForm,
    MenuFilterForm,
    MenuItemForm,
    OpeningHoursFormSet,
    SystemSettingForm,
)
from .models import MenuItem, OpeningHours, Reservation, SystemSetting
from .permissions import StaffRequiredMixin, staff_required
from .serializers import human_date

logger = logging.getLogger(__name__)

TABS = ("reservations", "menu", "hours", "settings")


def _selected_date(value):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return timezone.localdate()


def _back(tab, day=None):
    url = f"{reverse('dining:dashboard')}?tab={tab}"
    if day is not None:
        url += f"&date={day:%Y-%m-%d}"
    return redirect(url)


def _available_times(day):
    return [slot.time for slot in services.admin_time_slots(day) if slot.available]


# ==============================================================================
# DASHBOARD PAGE
# ==============================================================================

class DashboardView(StaffRequiredMixin, TemplateView):
    template_name = 'dining/dashboard/index.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tab = self.request.GET.get('tab', 'reservations')
        if tab not in TABS:
            tab = 'reservations'
        context.update({'tab': tab, 'tabs': TABS})

        try:
            context['stats'] = services.dashboard_stats()
            builder = getattr(self, f'_{tab}_context')
            context.update(builder())
        except DatabaseError as exc:
            logger.error(f"Dashboard data unavailable ({tab}): {exc}")
            messages.error(self.request, "Something went wrong while loading data. Please try again later.")
            context['load_failed'] = True
        return context

    def _reservations_context(self):
        day = _selected_date(self.request.GET.get('date'))
        slots = services.admin_time_slots(day)
        return {
            'selected_date': day,
            'selected_label': human_date(day),
            'closed': services.is_closed(day),
            'slots': slots,
            'reservations': services.reservations_for_date(day),
            'manual_form': ManualReservationForm(
                available_times=[slot.time for slot in slots if slot.available]
            ),
        }

    def _menu_context(self):
        filter_form = MenuFilterForm(self.request.GET or None)
        filters = filter_form.cleaned_data if filter_form.is_valid() else {}
        context = {
            'filter_form': filter_form,
            'menu_items': services.filter_menu_items(
                filters.get('category') or 'all',
                filters.get('status') or 'all',
                filters.get('search') or '',
            ),
            'menu_form': MenuItemForm(),
        }
        context['menu_rows'] = [
            (item, MenuItemForm(instance=item, prefix=f'menu-{item.pk}'))
            for item in context['menu_items']
        ]
        return context

    def _hours_context(self):
        services.load_opening_hours()
        return {
            'hours_formset': OpeningHoursFormSet(queryset=OpeningHours.objects.in_week_order()),
        }

    def _settings_context(self):
        return {
            'setting_forms': [
                (setting, SystemSettingForm(instance=setting, prefix=f'setting-{setting.pk}'))
                for setting in SystemSetting.objects.all()
            ],
        }


# ==============================================================================
# RESERVATIONS TAB
# ==============================================================================

@staff_required
@require_POST
def reservation_toggle(request, pk):
    reservation = get_object_or_404(Reservation, pk=pk)
    reservation = services.toggle_reservation_status(reservation.pk, user=request.user)
    messages.success(request, f"Reservation for {reservation.name} is now {reservation.get_status_display().lower()}.")
    return _back('reservations', reservation.date)


@staff_required
@require_POST
def reservation_delete(request, pk):
    reservation = get_object_or_404(Reservation, pk=pk)
    services.delete_reservation(reservation.pk, user=request.user)
    messages.success(request, f"Reservation for {reservation.name} deleted.")
    return _back('reservations', reservation.date)


@staff_required
@require_POST
def reservation_create(request):
    day = _selected_date(request.POST.get('date'))
    form = ManualReservationForm(request.POST, available_times=_available_times(day))
    if not form.is_valid():
        for field, errors in form.errors.items():
            for error in errors:
                messages.error(request, f"{field}: {error}" if field != '__all__' else error)
        return _back('reservations', day)

    try:
        reservation = services.create_manual_reservation(
            dict(form.cleaned_data, date=day), user=request.user
        )
    except services.ReservationError as exc:
        messages.error(request, f"Error: {exc}")
        return _back('reservations', day)

    messages.success(request, f"Reservation for {reservation.name} at {reservation.time} created.")
    return _back('reservations', day)


# ==============================================================================
# MENU TAB
# ==============================================================================

@staff_required
@require_POST
def menu_item_create(request):
    form = MenuItemForm(request.POST, request.FILES)
    if form.is_valid():
        item = services.save_menu_item(form, user=request.user)
        messages.success(request, f"'{item.name}' added to the menu.")
    else:
        messages.error(request, f"Could not save menu item: {form.errors.as_text()}")
    return _back('menu')


@staff_required
@require_POST
def menu_item_update(request, pk):
    item = get_object_or_404(MenuItem, pk=pk)
    form = MenuItemForm(request.POST, request.FILES, instance=item, prefix=f'menu-{item.pk}')
    if form.is_valid():
        services.save_menu_item(form, user=request.user)
        messages.success(request, f"'{item.name}' updated.")
    else:
        messages.error(request, f"Could not save menu item: {form.errors.as_text()}")
    return _back('menu')


@staff_required
@require_POST
def menu_item_delete(request, pk):
    item = get_object_or_404(MenuItem, pk=pk)
    services.delete_menu_item(item.pk, user=request.user)
    messages.success(request, f"'{item.name}' deleted.")
    return _back('menu')


@staff_required
@require_POST
def menu_item_toggle(request, pk):
    item = get_object_or_404(MenuItem, pk=pk)
    item = services.toggle_menu_item(item.pk, user=request.user)
    state = "visible" if item.active else "hidden"
    messages.success(request, f"'{item.name}' is now {state} on the menu.")
    return _back('menu')


# ==============================================================================
# OPENING HOURS TAB
# ==============================================================================

@staff_required
@require_POST
def opening_hours_update(request):
    formset = OpeningHoursFormSet(request.POST, queryset=OpeningHours.objects.in_week_order())
    if not formset.is_valid():
        for form in formset:
            for error in form.non_field_errors():
                messages.error(request, f"{form.instance.day}: {error}")
        if not any(form.non_field_errors() for form in formset):
            messages.error(request, "Please check the opening hours and try again.")
        return _back('hours')

    for form in formset:
        if form.has_changed():
            services.update_opening_hours(
                form.instance.pk, user=request.user,
                **{field: form.cleaned_data[field] for field in form.changed_data},
            )
    messages.success(request, "Opening hours saved.")
    return _back('hours')


# ==============================================================================
# SETTINGS TAB
# ==============================================================================

@staff_required
@require_POST
def setting_update(request, pk):
    setting = get_object_or_404(SystemSetting, pk=pk)
    form = SystemSettingForm(request.POST, instance=setting, prefix=f'setting-{setting.pk}')
    if form.is_valid():
        services.update_setting(setting.pk, form.cleaned_data['value'], user=request.user)
        messages.success(request, f"{setting.key} updated.")
    else:
        messages.error(request, f"{setting.key}: {'; '.join(form.errors.get('value', []))}")
    return _back('settings')
