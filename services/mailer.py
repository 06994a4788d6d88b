"""
Outgoing mail transport used by the notification dispatcher.
SmtpMailer delivers over SMTP; LogMailer only logs (default when mail is disabled).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Mapping, Optional, Protocol

import aiosmtplib

from config import Settings, settings
from exceptions import NotificationError
from services.templates import render, render_html

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    address: str
    name: Optional[str] = None


class Mailer(Protocol):
    async def send(self, recipient: Recipient, template_id: str, context: Mapping[str, Any]) -> None:
        ...


class LogMailer:
    async def send(self, recipient: Recipient, template_id: str, context: Mapping[str, Any]) -> None:
        subject, _ = render(template_id, {"recipient_name": recipient.name, **context})
        logger.info("[Mail] (not sent) to=%s template=%s subject=%s", recipient.address, template_id, subject)


class SmtpMailer:
    def __init__(self, config: Settings):
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.password = config.smtp_password
        self.use_tls = config.smtp_use_tls
        self.from_email = config.mail_from
        self.from_name = config.mail_from_name
        self.redirect_to = config.mail_redirect_to

    def build_message(self, recipient: Recipient, template_id: str, context: Mapping[str, Any]) -> MIMEMultipart:
        subject, body = render(template_id, {"recipient_name": recipient.name, **context})
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = self.redirect_to or recipient.address
        message["Subject"] = subject
        message.attach(MIMEText(body, "plain"))
        message.attach(MIMEText(render_html(body), "html"))
        return message

    async def send(self, recipient: Recipient, template_id: str, context: Mapping[str, Any]) -> None:
        message = self.build_message(recipient, template_id, context)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                start_tls=self.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            raise NotificationError(recipient.address, template_id, e) from e
        logger.info("[Mail] sent %s to %s", template_id, message["To"])


def build_mailer(config: Settings = settings) -> Mailer:
    if config.mail_enabled:
        return SmtpMailer(config)
    return LogMailer()
