"""Outbound email for booking confirmations."""

from .base import EmailSender, LoggingEmailSender
from .confirmation import render_confirmation, send_booking_confirmation
from .smtp import SmtpEmailSender

__all__ = [
    "EmailSender",
    "LoggingEmailSender",
    "SmtpEmailSender",
    "render_confirmation",
    "send_booking_confirmation",
]
