# dining/admin.py
import csv
import logging

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone
from django.utils.html import format_html
from unfold.admin import ModelAdmin

from . import services
from .models import MenuItem, OpeningHours, Reservation, SystemSetting

# =============================================================================
# === GLOBAL UTILITIES ========================================================
# =============================================================================

@admin.action(description="Mark selected as inactive")
def mark_inactive(modeladmin, request, queryset):
    updated = queryset.update(active=False)
    logging.getLogger("audit").info(f"User {request.user.get_username()} hid {updated} menu item(s)")


@admin.action(description="Mark selected as active")
def mark_active(modeladmin, request, queryset):
    updated = queryset.update(active=True)
    logging.getLogger("audit").info(f"User {request.user.get_username()} showed {updated} menu item(s)")


# =============================================================================
# === RESERVATION ADMIN =======================================================
# =============================================================================

@admin.register(Reservation)
class ReservationAdmin(ModelAdmin):
    """Full reservation list with guest notification actions and CSV export."""

    list_display = ("date", "time", "name", "guests", "email", "phone", "status_badge", "created_at")
    list_filter = ("status", "date")
    search_fields = ("name", "email", "phone")
    date_hierarchy = "date"
    ordering = ("-date", "time")
    readonly_fields = ("created_at",)
    actions = ["confirm_and_notify", "decline_and_notify", "export_selected_to_csv"]

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj):
        colour = "#16a34a" if obj.is_confirmed else "#d97706"
        return format_html('<b style="color:{}">{}</b>', colour, obj.get_status_display())

    # --------------------------------------------------------------------------
    # Guest notification actions
    # --------------------------------------------------------------------------
    @admin.action(description="Confirm and notify guests")
    def confirm_and_notify(self, request, queryset):
        count = services.confirm_and_notify(list(queryset), user=request.user)
        self.message_user(request, f"Confirmed {count} reservation(s); guests will be emailed.")

    @admin.action(description="Decline and notify guests (deletes)")
    def decline_and_notify(self, request, queryset):
        count = services.decline_and_notify(list(queryset), user=request.user)
        self.message_user(request, f"Declined {count} reservation(s); guests will be emailed.")

    # --------------------------------------------------------------------------
    # CSV Export Action
    # --------------------------------------------------------------------------
    @admin.action(description="Export selected reservations to CSV")
    def export_selected_to_csv(self, request, queryset):
        response = HttpResponse(content_type="text/csv")
        filename = f"reservations_{timezone.now():%Y%m%d_%H%M%S}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        writer = csv.writer(response)
        writer.writerow(["Date", "Time", "Name", "Email", "Phone", "Guests", "Status", "Special requests"])
        for reservation in queryset:
            writer.writerow([
                reservation.date.isoformat(),
                reservation.time,
                reservation.name,
                reservation.email,
                reservation.phone or "",
                reservation.guests,
                reservation.get_status_display(),
                (reservation.special_requests or "").replace("\n", " "),
            ])

        logging.getLogger("audit").info(
            f"User {request.user.get_username()} exported {queryset.count()} reservations "
            f"from IP={request.META.get('REMOTE_ADDR')}"
        )
        return response


# =============================================================================
# === MENU ADMIN ==============================================================
# =============================================================================

@admin.register(MenuItem)
class MenuItemAdmin(ModelAdmin):
    list_display = ("name", "category", "price", "active", "updated_at")
    list_filter = ("category", "active")
    search_fields = ("name", "description")
    list_editable = ("active",)
    readonly_fields = ("created_at", "updated_at")
    actions = [mark_active, mark_inactive]


# =============================================================================
# === OPENING HOURS & SETTINGS ADMIN ==========================================
# =============================================================================

@admin.register(OpeningHours)
class OpeningHoursAdmin(ModelAdmin):
    """Seven fixed weekday rows: editable, never added or removed."""

    list_display = ("day", "open", "close", "closed")
    list_editable = ("open", "close", "closed")
    readonly_fields = ("id", "day")
    ordering = (OpeningHours.week_order(),)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SystemSetting)
class SystemSettingAdmin(ModelAdmin):
    list_display = ("key", "value", "description", "updated_at")
    search_fields = ("key", "description")
    readonly_fields = ("updated_at",)

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ("key", "updated_at")
        return self.readonly_fields
