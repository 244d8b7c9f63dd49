"""
Twilio SMS Service
Sends appointment text messages through the Twilio REST API
"""

import logging
from typing import Optional

import httpx

from ..config import SHOP_NAME, TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def is_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER)


async def send_sms(
    to_phone: str,
    message_body: str,
    message_type: str,
    http_client: Optional[httpx.AsyncClient] = None,
) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number (E.164)
        message_body: SMS message content
        message_type: Type of message (confirmation, reminder, status_update)
        http_client: Optional client (tests pass one backed by httpx.MockTransport)

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    if not is_configured():
        logger.debug("Twilio credentials not set, skipping SMS")
        return False, "SMS not configured"

    data = {"To": to_phone, "From": TWILIO_FROM_NUMBER, "Body": message_body}
    url = f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json"

    try:
        logger.info(f"📱 Sending {message_type} SMS to {to_phone}")
        if http_client is not None:
            response = await _post(http_client, url, data)
        else:
            async with httpx.AsyncClient() as client:
                response = await _post(client, url, data)

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully: {message_type} to {to_phone} (SID: {message_sid})")
            return True, None

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_message = error_data.get("message", f"HTTP {response.status_code}")
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return False, f"[{error_code}] {error_message}" if error_code else error_message

    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        return False, str(e)


async def _post(client: httpx.AsyncClient, url: str, data: dict) -> httpx.Response:
    return await client.post(
        url, auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN), data=data, timeout=10.0
    )


# SMS Template Functions
def appointment_confirmation_sms(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> str:
    vehicle = f" for your {vehicle_name}" if vehicle_name else ""
    return f"Hi {customer_name}! Your {service_type} appointment{vehicle} is booked for {when}. - {SHOP_NAME}"


def appointment_reminder_sms(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> str:
    vehicle = f" ({vehicle_name})" if vehicle_name else ""
    return f"Hi {customer_name}! Reminder: {service_type}{vehicle} on {when}. See you soon! - {SHOP_NAME}"


def appointment_status_sms(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str, status: str
) -> str:
    vehicle = f" for your {vehicle_name}" if vehicle_name else ""
    return f"Hi {customer_name}! Your {service_type} appointment{vehicle} on {when} is now {status}. - {SHOP_NAME}"
