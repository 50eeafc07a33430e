import logging
import smtplib
from email.message import EmailMessage

from . import config

logger = logging.getLogger(__name__)


def send_email(email, subject, message):
    msg = EmailMessage()
    msg["From"] = config.EMAIL_FROM
    msg["To"] = email
    msg["Subject"] = subject
    msg.set_content(message)

    smtp_class = smtplib.SMTP_SSL if config.is_production() else smtplib.SMTP
    with smtp_class(config.EMAIL_HOST, config.EMAIL_PORT) as smtp:
        if config.EMAIL_USERNAME:
            smtp.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD or "")
        smtp.send_message(msg)
    logger.info("Sent '%s' to %s", subject, email)
