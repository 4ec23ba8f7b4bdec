from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import anyio
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import Settings
from app.core.errors import NotificationFailure
from app.core.logging_config import mask_email

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).parent.parent / "templates" / "emails"
env = Environment(loader=FileSystemLoader(TEMPLATE_PATH), autoescape=select_autoescape(["html", "html.j2", "xml"]))


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    text_body: str
    html_body: str | None = None
    from_name: str | None = None
    reply_to: str | None = None


class NotificationSender(Protocol):
    async def send(self, message: OutboundEmail) -> bool:
        """Deliver ``message``; False when delivery is disabled, ``NotificationFailure`` on transport errors."""
        ...


class SmtpEmailSender:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build_message(self, message: OutboundEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = formataddr((message.from_name, self.settings.sender_address)) if message.from_name else self.settings.sender_address
        msg["To"] = message.to
        if message.reply_to:
            msg["Reply-To"] = message.reply_to
        msg.set_content(message.text_body)
        if message.html_body:
            msg.add_alternative(message.html_body, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        settings = self.settings
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)

    async def send(self, message: OutboundEmail) -> bool:
        if not self.settings.smtp_enabled:
            logger.info("SMTP disabled; dropping email %r to %s", message.subject, mask_email(message.to))
            return False
        try:
            msg = self.build_message(message)
            await anyio.to_thread.run_sync(self._deliver, msg)
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            logger.warning("Email send to %s failed: %s", mask_email(message.to), exc)
            raise NotificationFailure("Email could not be sent") from exc
        logger.info("Email %r sent to %s", message.subject, mask_email(message.to))
        return True


def render_template(template_name: str, context: dict[str, Any]) -> tuple[str, str]:
    base_text = env.get_template("base.txt.j2")
    base_html = env.get_template("base.html.j2")
    body_text = env.get_template(template_name).render(**context)
    body_html = env.get_template(template_name.replace(".txt.j2", ".html.j2")).render(**context)
    return base_text.render(body=body_text, **context), base_html.render(body=body_html, **context)


def build_unsubscribe_url(client_url: str, email: str) -> str:
    return f"{client_url.rstrip('/')}/unsubscribe?email={quote(email, safe='')}"


async def send_subscription_confirmation(sender: NotificationSender, settings: Settings, email: str) -> bool:
    context = {
        "site_name": settings.site_name,
        "unsubscribe_url": build_unsubscribe_url(settings.client_url, email),
    }
    text_body, html_body = render_template("subscription_welcome.txt.j2", context)
    return await sender.send(
        OutboundEmail(
            to=email,
            subject=f"Thanks for subscribing to {settings.site_name}!",
            text_body=text_body,
            html_body=html_body,
            from_name=settings.newsletter_from_name,
        )
    )


async def send_contact_notification(
    sender: NotificationSender, settings: Settings, *, name: str, email: str, message: str
) -> bool:
    context = {"site_name": settings.site_name, "name": name, "email": email, "message": message}
    text_body, html_body = render_template("contact_message.txt.j2", context)
    return await sender.send(
        OutboundEmail(
            to=settings.contact_recipient,
            subject=f"New Contact Message from {' '.join(name.split())}",
            text_body=text_body,
            html_body=html_body,
            from_name=settings.contact_from_name,
            reply_to=email,
        )
    )
