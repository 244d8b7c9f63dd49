"""
Email Service using Resend
Appointment emails are written in MJML and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    appointment_confirmation_template,
    appointment_reminder_template,
    appointment_status_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Raises:
        Exception: email not configured, or the Resend call failed
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


def send_appointment_confirmation_email(
    to: str, customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> dict:
    return send_email(
        to=to,
        subject=f"Appointment Confirmed - {when}",
        mjml_content=appointment_confirmation_template(
            customer_name, service_type, vehicle_name, when
        ),
    )


def send_appointment_reminder_email(
    to: str, customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> dict:
    return send_email(
        to=to,
        subject=f"Reminder: {service_type} on {when}",
        mjml_content=appointment_reminder_template(customer_name, service_type, vehicle_name, when),
    )


def send_appointment_status_email(
    to: str,
    customer_name: str,
    service_type: str,
    vehicle_name: Optional[str],
    when: str,
    status: str,
) -> dict:
    return send_email(
        to=to,
        subject=f"Appointment {status}",
        mjml_content=appointment_status_template(
            customer_name, service_type, vehicle_name, when, status
        ),
    )
