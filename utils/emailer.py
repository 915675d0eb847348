import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

log = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str):
    """Returns (sent, error). Never raises; callers record the outcome."""
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        log.warning("email to %s failed: %s", to_email, exc)
        return False, str(exc)


def mentor_review_email(name: str, status: str, reason=None):
    if status == "APPROVED":
        subject = "Your mentor account has been approved"
        body = (
            f"Hi {name},\n\n"
            "Your mentor account has been approved. You can now create sessions "
            "and publish your availability.\n\n"
            "Thank you,\nMentorSlot"
        )
    else:
        subject = "Your mentor application was not approved"
        reason_line = f"\n\nReason: {reason}" if reason else ""
        body = (
            f"Hi {name},\n\n"
            "Unfortunately your mentor application was not approved."
            f"{reason_line}\n\n"
            "Thank you,\nMentorSlot"
        )
    return subject, body
