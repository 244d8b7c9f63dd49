import asyncio
from datetime import datetime
from urllib.parse import parse_qs

import httpx
import pytest

from shopflow import email_service
from shopflow.email_templates import (
    appointment_confirmation_template,
    appointment_reminder_template,
    appointment_status_template,
)
from shopflow.models import Appointment, Customer, Vehicle
from shopflow.services import twilio_service
from shopflow.services.notification_service import (
    NotificationDispatcher,
    NotificationKind,
    channel_for,
)


@pytest.fixture
def appointment():
    # 14:00 UTC is 9:00 AM in New York
    return Appointment(
        id=7,
        service_type="Brake inspection",
        start_time=datetime(2024, 1, 10, 14, 0),
        end_time=datetime(2024, 1, 10, 15, 0),
        status="Scheduled",
    )


@pytest.fixture
def civic():
    return Vehicle(year=2018, make="Honda", model="Civic")


def send(dispatcher, kind, appointment, customer, vehicle=None):
    return asyncio.run(dispatcher.dispatch(kind, appointment, customer, vehicle))


def sms_customer(**kwargs):
    kwargs.setdefault("communication_preference", "SMS")
    return Customer(name="Dana", phone="(555) 555-0100", email="dana@example.com", **kwargs)


@pytest.fixture
def twilio_configured(monkeypatch):
    monkeypatch.setattr(twilio_service, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(twilio_service, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(twilio_service, "TWILIO_FROM_NUMBER", "+15555550199")


@pytest.fixture
def twilio_requests():
    return []


@pytest.fixture
def dispatcher(twilio_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        twilio_requests.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    return NotificationDispatcher(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def test_channel_for():
    assert channel_for(sms_customer()) == "sms"
    assert channel_for(sms_customer(communication_preference="Email")) == "email"
    assert channel_for(sms_customer(communication_preference="Phone")) is None
    assert channel_for(Customer(name="X", communication_preference="SMS")) is None
    assert channel_for(Customer(name="X", communication_preference="Email")) is None
    assert channel_for(None) is None


def test_confirmation_sms(twilio_configured, dispatcher, twilio_requests, appointment, civic):
    result = send(dispatcher, NotificationKind.CONFIRMATION, appointment, sms_customer(), civic)

    assert result.sent is True
    assert result.channel == "sms"
    assert result.error is None
    (request,) = twilio_requests
    assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    form = parse_qs(request.content.decode())
    assert form["To"] == ["+15555550100"]
    assert form["From"] == ["+15555550199"]
    body = form["Body"][0]
    assert "Brake inspection" in body
    assert "2018 Honda Civic" in body
    assert "Wed Jan 10 at 9:00 AM" in body
    assert dispatcher.results[-1] == result


def test_status_sms_mentions_new_status(
    twilio_configured, dispatcher, twilio_requests, appointment
):
    appointment.status = "Confirmed"

    send(dispatcher, NotificationKind.STATUS_UPDATE, appointment, sms_customer())

    body = parse_qs(twilio_requests[0].content.decode())["Body"][0]
    assert "is now Confirmed" in body


def test_twilio_error_is_reported_not_raised(twilio_configured, appointment):
    def handler(request):
        return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

    dispatcher = NotificationDispatcher(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )

    result = send(dispatcher, NotificationKind.REMINDER, appointment, sms_customer())

    assert result.sent is False
    assert result.error == "[21211] Invalid 'To' Phone Number"


def test_transport_failure_is_reported_not_raised(twilio_configured, appointment):
    def handler(request):
        raise httpx.ConnectError("connection refused")

    dispatcher = NotificationDispatcher(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )

    result = send(dispatcher, NotificationKind.REMINDER, appointment, sms_customer())

    assert result.sent is False
    assert "connection refused" in result.error


def test_sms_not_configured(monkeypatch, dispatcher, twilio_requests, appointment):
    monkeypatch.setattr(twilio_service, "TWILIO_ACCOUNT_SID", None)

    result = send(dispatcher, NotificationKind.CONFIRMATION, appointment, sms_customer())

    assert result.sent is False
    assert result.error == "SMS not configured"
    assert twilio_requests == []


def test_bad_phone_number_is_reported(twilio_configured, dispatcher, appointment):
    customer = Customer(name="Dana", phone="555-0100", communication_preference="SMS")

    result = send(dispatcher, NotificationKind.CONFIRMATION, appointment, customer)

    assert result.sent is False
    assert result.error is not None


def test_no_channel_is_skipped(dispatcher, twilio_requests, appointment):
    customer = Customer(name="Walk In", communication_preference="None")

    result = send(dispatcher, NotificationKind.CONFIRMATION, appointment, customer)

    assert result.sent is False
    assert result.channel is None
    assert result.error == "No usable contact channel for customer"
    assert twilio_requests == []


def test_confirmation_email(monkeypatch, dispatcher, appointment, civic):
    sent = []
    monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: "<html>ok</html>")
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: sent.append(params))
    customer = sms_customer(communication_preference="Email")

    result = send(dispatcher, NotificationKind.CONFIRMATION, appointment, customer, civic)

    assert result.sent is True
    assert result.channel == "email"
    (params,) = sent
    assert params["to"] == ["dana@example.com"]
    assert params["subject"] == "Appointment Confirmed - Wed Jan 10 at 9:00 AM"
    assert params["html"] == "<html>ok</html>"


def test_email_not_configured(monkeypatch, dispatcher, appointment):
    monkeypatch.setattr(email_service, "RESEND_API_KEY", None)
    customer = sms_customer(communication_preference="Email")

    result = send(dispatcher, NotificationKind.REMINDER, appointment, customer)

    assert result.sent is False
    assert result.error == "Email service not configured"


def test_history_is_bounded(appointment):
    dispatcher = NotificationDispatcher(history_size=2)
    walk_in = Customer(name="Walk In", communication_preference="None")

    for _ in range(5):
        send(dispatcher, NotificationKind.CONFIRMATION, appointment, walk_in)

    assert len(dispatcher.results) == 2


def test_status_email_template():
    mjml = appointment_status_template(
        "Dana", "Oil change", None, "Wed Jan 10 at 9:00 AM", "Cancelled"
    )

    assert "<mjml>" in mjml
    assert "Hi Dana," in mjml
    assert "Cancelled" in mjml
    assert "🚗" not in mjml


def test_templates_escape_customer_text():
    confirmation = appointment_confirmation_template(
        "<b>Dana</b>", "Brakes & <script>alert(1)</script>", '2018 "Civic"', "Wed Jan 10 at 9:00 AM"
    )
    reminder = appointment_reminder_template("Dana", "<i>Tires</i>", None, "Wed Jan 10 at 9:00 AM")

    assert "<script>" not in confirmation
    assert "Hi &lt;b&gt;Dana&lt;/b&gt;," in confirmation
    assert "Brakes &amp; &lt;script&gt;" in confirmation
    assert "2018 &quot;Civic&quot;" in confirmation
    assert "<i>" not in reminder
    assert "Reminder: &lt;i&gt;Tires&lt;/i&gt;" in reminder
