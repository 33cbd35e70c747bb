# ABOUTME: Async notifier delivering subscription tokens by email.
# ABOUTME: Builds confirm/unsubscribe links and runs the blocking SMTP sender in a thread.

import asyncio
from urllib.parse import urlencode

from newsletter_service.email.sender import EmailSender

CONFIRM_PATH = "/subscribers/confirm"
UNSUBSCRIBE_PATH = "/subscriptions/unsubscribe"


class EmailNotifier:
    """SubscriptionNotifier backed by EmailSender."""

    def __init__(self, sender: EmailSender, base_url: str) -> None:
        self.sender = sender
        self.base_url = base_url.rstrip("/")

    def confirm_url(self, token: str) -> str:
        return f"{self.base_url}{CONFIRM_PATH}?{urlencode({'token': token})}"

    def unsubscribe_url(self, token: str) -> str:
        return f"{self.base_url}{UNSUBSCRIBE_PATH}?{urlencode({'token': token})}"

    async def send_confirmation(self, email: str, newsletter_name: str, token: str) -> None:
        await asyncio.to_thread(
            self.sender.send_confirmation_email, email, newsletter_name, self.confirm_url(token)
        )

    async def send_welcome(self, email: str, newsletter_name: str, token: str) -> None:
        await asyncio.to_thread(
            self.sender.send_welcome_email, email, newsletter_name, self.unsubscribe_url(token)
        )
