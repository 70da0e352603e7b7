import os
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)

BRAND = "JustHike"


class EmailDeliveryError(Exception):
    pass


def send_email(subject: str, body_html: str, to_email: str) -> None:
    """Send an HTML email over SMTP_SSL. Raises EmailDeliveryError on any failure."""
    host = os.getenv("SMTP_HOST")
    port = int(os.getenv("SMTP_PORT", "465") or 0)
    user = os.getenv("SMTP_USER")
    pwd = os.getenv("SMTP_PASS")
    from_email = os.getenv("SMTP_FROM", user or "noreply@example.com")
    if not (host and port and user and pwd):
        raise EmailDeliveryError("SMTP is not configured")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{BRAND} <{from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(body_html, "html"))
    try:
        with smtplib.SMTP_SSL(host, port) as server:
            server.login(user, pwd)
            server.sendmail(from_email, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(str(e)) from e
    logger.info("Email '%s' sent to %s", subject, to_email)


def try_send_email(subject: str, body_html: str, to_email: str) -> bool:
    try:
        send_email(subject, body_html, to_email)
        return True
    except EmailDeliveryError as e:
        logger.warning("Email '%s' to %s not sent: %s", subject, to_email, e)
        return False


# -------------------- Templates --------------------

def password_reset_email(name: str, reset_url: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #333;">Password Reset Request</h2>
      <p>Hello {name},</p>
      <p>You requested to reset your password. Click the button below to proceed:</p>
      <div style="text-align: center; margin: 30px 0;">
        <a href="{reset_url}"
           style="background-color: #4CAF50; color: white; padding: 12px 30px;
                  text-decoration: none; border-radius: 5px; display: inline-block;">
          Reset Password
        </a>
      </div>
      <p>Or copy and paste this link in your browser:</p>
      <p style="color: #666; word-break: break-all;">{reset_url}</p>
      <p style="color: #666; font-size: 14px;">
        This link will expire in 1 hour. If you didn't request this, please ignore this email.
      </p>
      <p style="color: #999; font-size: 12px;">{BRAND} - Your Adventure Awaits</p>
    </div>
    """


def password_changed_email(name: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #333;">Password Reset Successful</h2>
      <p>Hello {name},</p>
      <p>Your password has been successfully reset.</p>
      <p>If you didn't make this change, please contact support immediately.</p>
      <p style="color: #999; font-size: 12px;">{BRAND} - Your Adventure Awaits</p>
    </div>
    """
