# core/emailer.py
import os
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .logger import get_logger

logger = get_logger(__name__)

EMAIL_FROM = os.getenv("EMAIL_FROM", "").strip()
SMTP_HOST = os.getenv("SMTP_HOST", "").strip()
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "").strip()
SMTP_PASS = os.getenv("SMTP_PASS", "").strip()
SMTP_USE_SSL = os.getenv("SMTP_USE_SSL", "false").lower() == "true"
SMTP_MAX_ATTEMPTS = int(os.getenv("SMTP_MAX_ATTEMPTS", "3"))
SMTP_RETRY_WAIT = float(os.getenv("SMTP_RETRY_WAIT", "2"))


def build_message(
    subject: str,
    html_body: str,
    text_body: str | None,
    recipients: list[str],
) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = EMAIL_FROM
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject

    if not text_body:
        text_body = "HTML capable email client required to view this message."

    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


def _deliver(msg: MIMEMultipart, recipients: list[str]) -> None:
    if SMTP_USE_SSL:
        server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=30)
    else:
        server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)

    try:
        if not SMTP_USE_SSL:
            server.starttls()
        if SMTP_USER:
            server.login(SMTP_USER, SMTP_PASS)
        server.sendmail(EMAIL_FROM, recipients, msg.as_string())
    finally:
        try:
            server.quit()
        except smtplib.SMTPException:
            pass


def send_email(
    subject: str,
    html_body: str,
    text_body: str | None,
    recipients: list[str],
) -> bool:
    """Send a multipart email. Returns False when skipped or undeliverable."""
    if not recipients:
        logger.warning(
            "No recipients provided for email '%s'; skipping send.", subject
        )
        return False

    if not (EMAIL_FROM and SMTP_HOST):
        logger.warning(
            "Email not fully configured (EMAIL_FROM/SMTP_HOST); skipping email: %s",
            subject,
        )
        return False

    msg = build_message(subject, html_body, text_body, recipients)

    try:
        for attempt in Retrying(
            retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
            stop=stop_after_attempt(SMTP_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=SMTP_RETRY_WAIT, max=30),
            reraise=True,
        ):
            with attempt:
                _deliver(msg, recipients)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email '%s' to %s: %s", subject, recipients, e)
        return False

    logger.info("Email sent to %s: %s", recipients, subject)
    return True
