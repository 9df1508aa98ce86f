# dining/apps.py

import atexit
import logging

from django.apps import AppConfig


class DiningConfig(AppConfig):
    """App configuration for the restaurant site."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'dining'
    verbose_name = "Gourmet Haven"

    def ready(self):
        """
        Drain the notification worker on interpreter exit so queued emails
        still go out after the last request.
        """
        from . import notifications

        atexit.register(notifications.shutdown)
        logging.getLogger(__name__).debug("Notification worker shutdown hook registered.")
