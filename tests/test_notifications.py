import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from telecare.infrastructure.notifications import EmailConfig, EmailDeliveryError, EmailSender, html_to_text
from telecare.core.celery_app import EMAIL_QUEUE, celery_app
from telecare.tasks.email_tasks import send_text_email_task

BOOKING_DATA = {
    "booking_id": "b1c2",
    "name": "Pat Client",
    "email": "patient@example.com",
    "appointment_at": "2030-05-14 10:00 UTC",
    "payment_status": "paid",
    "booking_fee": 40.0,
    "reason": "Follow-up",
    "meeting_link": "https://zoom.us/j/987654321",
}


@pytest.fixture
def sender() -> EmailSender:
    return EmailSender(EmailConfig(api_key="re_test_key", from_email="Telecare <no-reply@telecare.example>"))


@pytest.mark.unit
def test_confirmation_template_renders_booking(sender):
    html = sender.render("booking_confirmation", BOOKING_DATA)

    assert "b1c2" in html
    assert "2030-05-14 10:00 UTC" in html
    assert 'href="https://zoom.us/j/987654321"' in html


@pytest.mark.unit
def test_templates_escape_user_input(sender):
    html = sender.render("booking_confirmation", {**BOOKING_DATA, "name": "<script>alert(1)</script>"})

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


@pytest.mark.unit
def test_admin_notice_and_reset_templates_render(sender):
    notice = sender.render("admin_booking_notice", BOOKING_DATA)
    assert "patient@example.com" in notice

    reset = sender.render("forgot_password", {
        "name": "Pat", "url": "https://app.example.com/reset-password?token=abc", "expires_minutes": 10
    })
    assert "https://app.example.com/reset-password?token=abc" in reset
    assert "10" in html_to_text(reset)


@pytest.mark.unit
async def test_send_template_calls_resend(sender):
    with patch("telecare.infrastructure.notifications.resend.Emails.send", return_value={"id": "em_1"}) as send:
        result = await sender.send_template(
            "patient@example.com", "booking_confirmation", "Your Booking is Confirmed", BOOKING_DATA
        )

    assert result == {"id": "em_1"}
    payload = send.call_args.args[0]
    assert payload["from"] == "Telecare <no-reply@telecare.example>"
    assert payload["to"] == "patient@example.com"
    assert payload["subject"] == "Your Booking is Confirmed"
    assert "<h1" in payload["html"]
    assert "<" not in payload["text"]


@pytest.mark.unit
async def test_send_text_has_no_html(sender):
    with patch("telecare.infrastructure.notifications.resend.Emails.send", return_value={"id": "em_2"}) as send:
        await sender.send_text("patient@example.com", "Account Activated", "Hi Pat, your account is active now.")

    payload = send.call_args.args[0]
    assert payload["text"] == "Hi Pat, your account is active now."
    assert "html" not in payload


@pytest.mark.unit
async def test_provider_error_becomes_delivery_error(sender):
    with patch("telecare.infrastructure.notifications.resend.Emails.send", side_effect=RuntimeError("rate limited")):
        with pytest.raises(EmailDeliveryError):
            await sender.send_text("patient@example.com", "Subject", "Body")


@pytest.mark.unit
async def test_missing_api_key_is_a_delivery_error():
    sender = EmailSender(EmailConfig(api_key=None, from_email="no-reply@telecare.example"))

    with patch("telecare.infrastructure.notifications.resend.Emails.send") as send:
        with pytest.raises(EmailDeliveryError):
            await sender.send_text("patient@example.com", "Subject", "Body")

    send.assert_not_called()


@pytest.mark.unit
def test_html_to_text():
    assert html_to_text("<p>Hello <b>Pat</b></p>\n<p>Bye</p>") == "Hello Pat Bye"


@pytest.mark.unit
def test_text_email_task_sends_through_email_sender():
    fake_sender = MagicMock()
    fake_sender.send_text = AsyncMock(return_value={"id": "em_3"})

    with patch("telecare.api.deps.get_email_sender", return_value=fake_sender):
        assert send_text_email_task("sam@example.com", "Account Activated", "Hi Sam, your account is active now.")

    fake_sender.send_text.assert_awaited_once_with(
        "sam@example.com", "Account Activated", "Hi Sam, your account is active now."
    )


@pytest.mark.unit
def test_email_tasks_are_registered_and_routed():
    assert "telecare.tasks.email_tasks" in celery_app.conf.include
    assert send_text_email_task.name in celery_app.tasks
    assert celery_app.conf.task_routes["telecare.tasks.email_tasks.*"] == {"queue": EMAIL_QUEUE}
    assert celery_app.conf.task_acks_late is True
    assert celery_app.conf.worker_prefetch_multiplier == 1


@pytest.mark.unit
def test_text_email_task_retries_delivery_failures():
    assert send_text_email_task.autoretry_for == (EmailDeliveryError,)
    assert send_text_email_task.max_retries == 3
    assert send_text_email_task.retry_backoff is True
