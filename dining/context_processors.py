from django.conf import settings


def restaurant(request):
    """Venue details used by the layout, the footer and the legal pages."""
    return {
        "restaurant": {
            "name": settings.RESTAURANT_NAME,
            "address": settings.RESTAURANT_ADDRESS,
            "phone": settings.RESTAURANT_PHONE,
            "email": settings.CONTACT_EMAIL,
        }
    }
