"""Celery worker delivering deferred email jobs.

Run with: celery -A insegnami.worker worker --loglevel=info
"""
from email.message import EmailMessage
import logging
import smtplib

from celery import Celery

from .core.config import settings

logger = logging.getLogger(__name__)

SEND_EMAIL_TASK = "insegnami.send_email"

# Celery configuration
celery_app = Celery(
    "insegnami",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)


def build_message(to, subject: str, html: str, sender: str = None) -> EmailMessage:
    recipients = [to] if isinstance(to, str) else list(to)
    message = EmailMessage()
    message["From"] = sender or settings.smtp_from
    message["To"] = ", ".join(recipients)
    message["Subject"] = subject
    message.set_content("This message requires an HTML capable mail client.")
    message.add_alternative(html, subtype="html")
    return message


@celery_app.task(
    name=SEND_EMAIL_TASK,
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    max_retries=5,
)
def send_email(to, subject: str, html: str, sender: str = None):
    message = build_message(to, subject, html, sender)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls()
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(message)
    logger.info(f"Email '{subject}' delivered to {message['To']}")
    return True
