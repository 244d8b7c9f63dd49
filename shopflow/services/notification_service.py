"""
Appointment Notification Dispatcher
Picks SMS or email from the customer's communication preference and sends
best-effort: every outcome, failures included, comes back as a DeliveryResult
and is recorded on ``results``. Nothing here raises into the caller.

Write paths snapshot what they want sent with ``prepare`` while their session
is open; routes hand the snapshots to ``deliver`` as background tasks so a slow
provider never holds up the response.
"""

import asyncio
import logging
from collections import deque
from typing import Optional

import httpx
from pydantic import BaseModel

from ..shared.timeutils import format_local
from ..shared.validators import validate_email, validate_us_phone
from . import twilio_service

logger = logging.getLogger(__name__)


class NotificationKind:
    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    STATUS_UPDATE = "status_update"

    ALL = (CONFIRMATION, REMINDER, STATUS_UPDATE)


class Notification(BaseModel):
    """Everything needed to send one message, detached from the ORM"""

    kind: str
    appointment_id: Optional[int] = None
    channel: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    customer_name: Optional[str] = None
    service_type: str
    vehicle_name: Optional[str] = None
    when: str
    status: str


class DeliveryResult(BaseModel):
    kind: str
    appointment_id: Optional[int] = None
    channel: Optional[str] = None  # "sms", "email", or None when skipped
    sent: bool = False
    error: Optional[str] = None


def channel_for(customer) -> Optional[str]:
    """The channel a customer can be reached on, or None"""
    if customer is None:
        return None
    preference = (customer.communication_preference or "").upper()
    if preference == "SMS" and customer.phone:
        return "sms"
    if preference == "EMAIL" and customer.email:
        return "email"
    return None


class NotificationDispatcher:
    """Sends appointment notifications over Twilio SMS or Resend email"""

    def __init__(
        self, http_client: Optional[httpx.AsyncClient] = None, history_size: int = 500
    ):
        self.http_client = http_client
        # Most recent outcomes, newest last
        self.results: deque[DeliveryResult] = deque(maxlen=history_size)

    def prepare(self, kind: str, appointment, customer, vehicle=None) -> Notification:
        return Notification(
            kind=kind,
            appointment_id=getattr(appointment, "id", None),
            channel=channel_for(customer),
            phone=getattr(customer, "phone", None),
            email=getattr(customer, "email", None),
            customer_name=getattr(customer, "name", None),
            service_type=appointment.service_type,
            vehicle_name=vehicle.display_name if vehicle is not None else None,
            when=format_local(appointment.start_time),
            status=appointment.status,
        )

    async def dispatch(self, kind: str, appointment, customer, vehicle=None) -> DeliveryResult:
        return await self.deliver(self.prepare(kind, appointment, customer, vehicle))

    async def deliver(self, notification: Notification) -> DeliveryResult:
        kind = notification.kind
        result = DeliveryResult(
            kind=kind, appointment_id=notification.appointment_id, channel=notification.channel
        )
        try:
            if result.channel is None:
                result.error = "No usable contact channel for customer"
                logger.debug(f"⚠️ {kind} notification skipped for appointment {result.appointment_id}")
            elif result.channel == "sms":
                await self._send_sms(notification, result)
            else:
                await self._send_email(notification, result)
        except Exception as e:
            result.sent = False
            result.error = str(e)
            logger.error(
                f"❌ Failed to send {kind} {result.channel or ''} notification "
                f"for appointment {result.appointment_id}: {e}"
            )

        self.results.append(result)
        return result

    @staticmethod
    def _details(notification: Notification) -> dict:
        return {
            "customer_name": notification.customer_name,
            "service_type": notification.service_type,
            "vehicle_name": notification.vehicle_name,
            "when": notification.when,
        }

    async def _send_sms(self, notification: Notification, result: DeliveryResult) -> None:
        kind = notification.kind
        details = self._details(notification)
        if kind == NotificationKind.CONFIRMATION:
            body = twilio_service.appointment_confirmation_sms(**details)
        elif kind == NotificationKind.REMINDER:
            body = twilio_service.appointment_reminder_sms(**details)
        else:
            body = twilio_service.appointment_status_sms(**details, status=notification.status)

        phone = validate_us_phone(notification.phone)
        sent, error = await twilio_service.send_sms(
            phone, body, kind, http_client=self.http_client
        )
        result.sent = sent
        result.error = error
        if sent:
            logger.info(f"✅ {kind} SMS sent for appointment {result.appointment_id}")
        else:
            logger.warning(f"⚠️ {kind} SMS not sent for appointment {result.appointment_id}: {error}")

    async def _send_email(self, notification: Notification, result: DeliveryResult) -> None:
        from .. import email_service

        kind = notification.kind
        details = self._details(notification)
        to = validate_email(notification.email)
        # Resend's client is synchronous; keep it off the event loop
        if kind == NotificationKind.CONFIRMATION:
            await asyncio.to_thread(email_service.send_appointment_confirmation_email, to, **details)
        elif kind == NotificationKind.REMINDER:
            await asyncio.to_thread(email_service.send_appointment_reminder_email, to, **details)
        else:
            await asyncio.to_thread(
                email_service.send_appointment_status_email,
                to,
                **details,
                status=notification.status,
            )
        result.sent = True
        logger.info(f"✅ {kind} email sent for appointment {result.appointment_id}")


# Global dispatcher instance
notifier = NotificationDispatcher()


def get_notifier() -> NotificationDispatcher:
    """FastAPI dependency for the shared dispatcher"""
    return notifier
