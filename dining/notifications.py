import logging
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import models
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="reservation-mail")


class NotificationKind(models.TextChoices):
    RECEIVED = 'received', 'Reservation received'
    CONFIRMED = 'confirmed', 'Reservation confirmed'
    DECLINED = 'declined', 'Reservation declined'


def _subject(template, payload):
    name = settings.RESTAURANT_NAME
    subjects = {
        "received": f"We received your reservation - {name}",
        "confirmed": f"Your reservation is confirmed! - {name}",
        "declined": f"Reservation update - {name}",
        "new_reservation": f"New reservation: {payload['name']} - {payload['date']}",
    }
    return subjects[template]


def _build_message(template, payload, recipient):
    context = {
        "reservation": payload,
        "restaurant_name": settings.RESTAURANT_NAME,
        "restaurant_address": settings.RESTAURANT_ADDRESS,
        "site_url": settings.SITE_URL,
    }
    text_body = render_to_string(f"dining/emails/{template}.txt", context)
    html_body = render_to_string(f"dining/emails/{template}.html", context)
    message = EmailMultiAlternatives(
        subject=_subject(template, payload),
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient],
    )
    message.attach_alternative(html_body, "text/html")
    return message


def build_messages(kind, payload):
    """
    Emails for one notification.

    ``received`` goes to the guest and to the restaurant inbox;
    ``confirmed`` and ``declined`` go to the guest only.
    """
    if kind == NotificationKind.RECEIVED:
        return [
            _build_message("received", payload, payload["email"]),
            _build_message("new_reservation", payload, settings.RESTAURANT_EMAIL),
        ]
    if kind == NotificationKind.CONFIRMED:
        return [_build_message("confirmed", payload, payload["email"])]
    if kind == NotificationKind.DECLINED:
        return [_build_message("declined", payload, payload["email"])]
    raise ValueError(f"Unknown notification kind: {kind!r}")


def send_notification(kind, payload) -> int:
    """
    Render and send every email for ``kind``.

    Failures are logged and swallowed; returns the number of emails sent.
    """
    try:
        messages = build_messages(kind, payload)
    except Exception as exc:
        logger.error(f"Could not render {kind} notification for {payload.get('email')}: {exc}", exc_info=True)
        return 0

    sent = 0
    for message in messages:
        try:
            sent += message.send()
        except Exception as exc:
            logger.error(f"Email to {message.to} failed ({kind}): {exc}")
    if sent < len(messages):
        logger.warning(f"{len(messages) - sent} of {len(messages)} {kind} emails failed")
    else:
        logger.info(f"Sent {sent} {kind} email(s) for {payload.get('email')}")
    return sent


def dispatch(kind, payload):
    """
    Fire-and-forget entry point.

    With NOTIFICATIONS_ASYNC the work is handed to a worker thread and the
    caller never waits on the mail server.
    """
    if kind not in NotificationKind.values:
        raise ValueError(f"Unknown notification kind: {kind!r}")

    if not getattr(settings, "NOTIFICATIONS_ASYNC", True):
        send_notification(kind, payload)
        return

    try:
        _executor.submit(send_notification, kind, payload)
    except RuntimeError as exc:
        # Executor already shut down (interpreter exit).
        logger.error(f"Could not queue {kind} notification: {exc}")


def shutdown(wait=True):
    """Stop accepting work and wait for queued emails."""
    _executor.shutdown(wait=wait)
