"""
MJML Email Templates
Appointment emails sent to shop customers
"""

import html
from typing import Optional

from .config import SHOP_NAME

THEME = {
    "primary": "#1d4ed8",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "border": "#e2e8f0",
    "success": "#16a34a",
}


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Escape HTML special characters in customer-supplied text"""
    if value is None:
        return None
    return html.escape(str(value), quote=True)


def get_base_template(title: str, preview_text: str, content_sections: str) -> str:
    """Base MJML template wrapper for all emails"""
    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>
        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8">
              {SHOP_NAME}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _appointment_details(service_type: str, vehicle_name: Optional[str], when: str) -> str:
    vehicle_line = f"<br />🚗 {sanitize_string(vehicle_name)}" if vehicle_name else ""
    return f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="16px 0">
      🔧 {sanitize_string(service_type)}{vehicle_line}<br />📅 {when}
    </mj-text>
    """


def appointment_confirmation_template(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> str:
    """Booking confirmation for the customer"""
    content = f"""
    <mj-text>Hi {sanitize_string(customer_name)},</mj-text>
    <mj-text>Your appointment with <strong>{SHOP_NAME}</strong> is booked.</mj-text>
    {_appointment_details(service_type, vehicle_name, when)}
    <mj-text>Reply to this email if you need to change the time.</mj-text>
    """
    return get_base_template(
        title="Your Appointment is Scheduled",
        preview_text=f"Appointment confirmed for {when}",
        content_sections=content,
    )


def appointment_reminder_template(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str
) -> str:
    content = f"""
    <mj-text>Hi {sanitize_string(customer_name)},</mj-text>
    <mj-text>This is a reminder of your upcoming appointment.</mj-text>
    {_appointment_details(service_type, vehicle_name, when)}
    <mj-text>See you soon!</mj-text>
    """
    return get_base_template(
        title="Appointment Reminder",
        preview_text=f"Reminder: {sanitize_string(service_type)} on {when}",
        content_sections=content,
    )


def appointment_status_template(
    customer_name: str, service_type: str, vehicle_name: Optional[str], when: str, status: str
) -> str:
    content = f"""
    <mj-text>Hi {sanitize_string(customer_name)},</mj-text>
    <mj-text>
      Your appointment status is now
      <strong style="color: {THEME['success']};">{status}</strong>.
    </mj-text>
    {_appointment_details(service_type, vehicle_name, when)}
    """
    return get_base_template(
        title=f"Appointment {status}",
        preview_text=f"Your appointment is {status.lower()}",
        content_sections=content,
    )
