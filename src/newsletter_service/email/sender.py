# ABOUTME: Email sender for subscription messages via SMTP.
# ABOUTME: Renders confirmation and welcome templates with Jinja2 and delivers them.

from __future__ import annotations

import smtplib
from email.message import EmailMessage

import structlog
from jinja2 import Environment, FileSystemLoader

from newsletter_service.config import Settings, get_settings

log = structlog.get_logger()

CONFIRMATION_HTML_TEMPLATE = "confirmation_email.html"
CONFIRMATION_TXT_TEMPLATE = "confirmation_email.txt"
WELCOME_HTML_TEMPLATE = "welcome_email.html"
WELCOME_TXT_TEMPLATE = "welcome_email.txt"


def recipient_name(email: str) -> str:
    """Use the local part of an address as a greeting name."""
    local, _, _ = email.partition("@")
    return local or email


class EmailSender:
    """Sends subscription emails via SMTP."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._jinja_env: Environment | None = None

    @property
    def jinja_env(self) -> Environment:
        """Lazy-initialized Jinja2 environment."""
        if self._jinja_env is None:
            self._jinja_env = Environment(
                loader=FileSystemLoader(str(self.settings.templates_dir)),
                autoescape=True,
            )
        return self._jinja_env

    def send_confirmation_email(self, to_email: str, newsletter_name: str, confirm_url: str) -> None:
        """Send subscription confirmation email.

        Args:
            to_email: Email address to send confirmation to.
            newsletter_name: Newsletter being subscribed to.
            confirm_url: Full URL for confirming the subscription.
        """
        log.info("sending_confirmation_email", to=to_email)
        message = self._build_message(
            to_email,
            self.settings.confirmation_email_subject,
            CONFIRMATION_HTML_TEMPLATE,
            CONFIRMATION_TXT_TEMPLATE,
            {
                "name": recipient_name(to_email),
                "newsletter_name": newsletter_name,
                "confirm_url": confirm_url,
            },
        )
        self._send_smtp(message, [to_email])

    def send_welcome_email(self, to_email: str, newsletter_name: str, unsubscribe_url: str) -> None:
        """Send the post-confirmation welcome email carrying the unsubscribe link."""
        log.info("sending_welcome_email", to=to_email)
        message = self._build_message(
            to_email,
            self.settings.welcome_email_subject,
            WELCOME_HTML_TEMPLATE,
            WELCOME_TXT_TEMPLATE,
            {
                "name": recipient_name(to_email),
                "newsletter_name": newsletter_name,
                "unsubscribe_url": unsubscribe_url,
            },
        )
        message.add_header("List-Unsubscribe", f"<{unsubscribe_url}>")
        self._send_smtp(message, [to_email])

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_template: str,
        txt_template: str,
        context: dict,
    ) -> EmailMessage:
        """Render both templates into a multipart message."""
        html_content = self.jinja_env.get_template(html_template).render(**context)
        txt_content = self.jinja_env.get_template(txt_template).render(**context)

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"{self.settings.sender_name} <{self.settings.sender_email}>"
        message["To"] = to_email
        message.add_header("Return-Path", self.settings.bounce_email)

        message.set_content(txt_content)
        message.add_alternative(html_content, subtype="html")
        return message

    def _send_smtp(self, message: EmailMessage, recipients: list[str]) -> None:
        """Send email via SMTP."""
        if not self.settings.smtp_user or not self.settings.smtp_password:
            raise ValueError(
                "SMTP credentials not configured. Set smtp_user and smtp_password in .env file."
            )

        log.debug(
            "connecting_smtp",
            host=self.settings.smtp_host,
            port=self.settings.smtp_port,
        )

        server = smtplib.SMTP(
            self.settings.smtp_host,
            self.settings.smtp_port,
            timeout=30,
        )

        try:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(
                self.settings.smtp_user.get_secret_value(),
                self.settings.smtp_password.get_secret_value(),
            )

            for recipient in recipients:
                server.sendmail(
                    message["From"],
                    recipient,
                    message.as_string(),
                )

        finally:
            server.quit()

        log.info("email_sent", subject=message["Subject"], recipient_count=len(recipients))
