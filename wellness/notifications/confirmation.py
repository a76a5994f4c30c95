"""Booking confirmation emails (plain text)."""

from __future__ import annotations

import logging
from datetime import date

from wellness.models.booking import BookingRecord
from .base import EmailSender

logger = logging.getLogger(__name__)

LOCATION_NAME = "Midtown Biohack"
LOCATION_ADDRESS = "575 Madison Ave, 23rd floor, New York, NY 10022"


def _display_date(value: str) -> str:
    try:
        d = date.fromisoformat(value)
    except ValueError:
        return value
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def render_confirmation(booking: BookingRecord) -> tuple[str, str]:
    """Return (subject, body) for the guest's confirmation email."""
    subject = "Your Hyperbaric Chamber Session Confirmation"

    lines = [
        f"Hi {booking.first_name},",
        "",
        "Your hyperbaric oxygen therapy session is booked.",
        "",
        f"  Date:       {_display_date(booking.date)}",
        f"  Time:       {booking.time}",
        f"  Duration:   {booking.duration} minutes",
        f"  Group size: {booking.group_size}",
        f"  Location:   {LOCATION_NAME}, {LOCATION_ADDRESS}",
    ]

    guests = [s.get("name", "") for s in booking.seat_data or [] if s.get("name")]
    if guests:
        lines.append(f"  Guests:     {', '.join(guests)}")
    if booking.notes:
        lines.append(f"  Notes:      {booking.notes}")

    lines += [
        "",
        "Please arrive 10 minutes early. Reply to this email to change or cancel.",
        "",
        LOCATION_NAME,
    ]
    return subject, "\n".join(lines)


def render_admin_notification(booking: BookingRecord) -> tuple[str, str]:
    """Return (subject, body) for the staff notification of a new booking."""
    subject = f"New booking: {booking.full_name} on {booking.date} at {booking.time}"
    body = "\n".join([
        f"Name:       {booking.full_name}",
        f"Email:      {booking.email}",
        f"Phone:      {booking.phone}",
        f"Date:       {booking.date} {booking.time}",
        f"Duration:   {booking.duration} minutes",
        f"Location:   {booking.location}",
        f"Group size: {booking.group_size}",
        f"Reason:     {booking.booking_reason or '-'}",
        f"Notes:      {booking.notes or '-'}",
    ])
    return subject, body


async def send_booking_confirmation(
    sender: EmailSender, booking: BookingRecord, contact_email: str = "",
) -> bool:
    """Send the guest confirmation and, if configured, the staff notification.

    Returns whether the guest email was accepted. The staff copy is best
    effort and does not affect the result.
    """
    subject, body = render_confirmation(booking)
    delivered = await sender.send(booking.email, subject, body)
    if not delivered:
        logger.warning("Confirmation email for booking %s was not delivered", booking.id)

    if contact_email:
        admin_subject, admin_body = render_admin_notification(booking)
        if not await sender.send(contact_email, admin_subject, admin_body):
            logger.warning("Staff notification for booking %s was not delivered", booking.id)

    return delivered
