import re

from django import forms
from django.core.validators import RegexValidator
from django.utils import timezone

from .models import MenuItem, OpeningHours, SystemSetting
from .services import EMAIL_PATTERN

email_shape = RegexValidator(
    regex=EMAIL_PATTERN,
    message="Please enter a valid email address."
)


def format_phone(value):
    """
    Normalise a phone number to ``+CC XXX XXX XXXX``.

    Only digits are kept; anything past the fourth group is dropped.
    """
    digits = re.sub(r"\D", "", value or "")
    if not digits:
        return ""
    country, rest = digits[:2], digits[2:]
    formatted = f"+{country}"
    for start, end in ((0, 3), (3, 6), (6, 10)):
        if len(rest) > start:
            formatted += f" {rest[start:end]}"
    return formatted


# ==============================================================================
# RESERVATION WIZARD FORMS
# ==============================================================================
class ReservationDateForm(forms.Form):
    """Step 1: pick a date that is not in the past and not a closed day."""
    date = forms.DateField(
        widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}),
        input_formats=['%Y-%m-%d'],
    )

    def __init__(self, *args, closed_days=(), **kwargs):
        self.closed_days = set(closed_days)
        super().__init__(*args, **kwargs)
        self.fields['date'].widget.attrs['min'] = timezone.localdate().isoformat()

    def clean_date(self):
        day = self.cleaned_data['date']
        if day < timezone.localdate():
            raise forms.ValidationError("Please choose a date in the future.")
        if day.weekday() in self.closed_days:
            raise forms.ValidationError("We are closed on that day. Please choose another date.")
        return day


class ReservationDetailsForm(forms.Form):
    """Step 3: guest details for the chosen slot."""
    name = forms.CharField(max_length=120, label="Full name")
    guests = forms.TypedChoiceField(coerce=int, label="Number of guests")
    email = forms.CharField(max_length=254, validators=[email_shape], label="Email")
    phone = forms.CharField(
        max_length=30, required=False, label="Phone (optional)",
        widget=forms.TextInput(attrs={'type': 'tel', 'inputmode': 'tel', 'placeholder': '+43 123 456 7890'}),
    )
    special_requests = forms.CharField(
        required=False, label="Special requests",
        widget=forms.Textarea(attrs={'rows': 3}),
    )

    def __init__(self, *args, seats_per_table=4, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['guests'].choices = [
            (n, f"{n} {'Guest' if n == 1 else 'Guests'}") for n in range(1, seats_per_table + 1)
        ]
        self.fields['guests'].initial = 1

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not name:
            raise forms.ValidationError("This field is required.")
        return name

    def clean_email(self):
        return self.cleaned_data['email'].strip()

    def clean_phone(self):
        return format_phone(self.cleaned_data.get('phone'))


# ==============================================================================
# STAFF DASHBOARD FORMS
# ==============================================================================
class ManualReservationForm(forms.Form):
    """Staff booking into one of the day's available slots."""
    name = forms.CharField(max_length=120)
    email = forms.CharField(max_length=254, validators=[email_shape])
    guests = forms.IntegerField(min_value=1, initial=1)
    time = forms.ChoiceField(choices=())

    def __init__(self, *args, available_times=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['time'].choices = [(t, t) for t in available_times]
        if not available_times:
            self.fields['time'].help_text = "No free slots on this day."


class MenuItemForm(forms.ModelForm):
    """Create or edit a dish."""
    class Meta:
        model = MenuItem
        fields = ["name", "description", "price", "category", "active", "image"]
        widgets = {
            'description': forms.Textarea(attrs={'rows': 3}),
            'name': forms.TextInput(attrs={'placeholder': 'e.g., Wiener Schnitzel'}),
        }


class MenuFilterForm(forms.Form):
    category = forms.ChoiceField(
        required=False,
        choices=[('all', 'All Categories')] + list(MenuItem.Category.choices),
    )
    status = forms.ChoiceField(
        required=False,
        choices=[('all', 'All Status'), ('active', 'Active'), ('inactive', 'Inactive')],
    )
    search = forms.CharField(required=False)


class OpeningHoursForm(forms.ModelForm):
    class Meta:
        model = OpeningHours
        fields = ["open", "close", "closed"]
        widgets = {
            'open': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
            'close': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
        }

    def clean(self):
        cleaned = super().clean()
        opens, closes = cleaned.get('open'), cleaned.get('close')
        if not cleaned.get('closed') and opens and closes and closes <= opens:
            raise forms.ValidationError("Closing time must be later than opening time.")
        return cleaned


OpeningHoursFormSet = forms.modelformset_factory(
    OpeningHours, form=OpeningHoursForm, extra=0, can_delete=False,
)


class SystemSettingForm(forms.ModelForm):
    """Settings tab edits the value only; keys are fixed."""
    class Meta:
        model = SystemSetting
        fields = ["value"]

    def clean_value(self):
        value = self.cleaned_data['value'].strip()
        numeric_keys = SystemSetting.Key.values
        if self.instance.key in numeric_keys and not value.isdigit():
            raise forms.ValidationError("Enter a whole number.")
        return value
