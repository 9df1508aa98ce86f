"""
permissions.py

Staff-only access for the dashboard views.
"""

from django.contrib.auth.decorators import user_passes_test
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.urls import reverse_lazy


def is_staff_member(user):
    return user.is_authenticated and user.is_active and user.is_staff


class StaffRequiredMixin(LoginRequiredMixin, UserPassesTestMixin):
    """Anonymous users go to the login page; logged-in non-staff get a 403."""
    login_url = reverse_lazy('dining:login')

    def test_func(self):
        return is_staff_member(self.request.user)


staff_required = user_passes_test(is_staff_member, login_url=reverse_lazy('dining:login'))
