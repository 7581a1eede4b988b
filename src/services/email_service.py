"""Activation emails over SMTP, sent fire-and-forget."""

import asyncio
from typing import Optional

import aiosmtplib
import structlog

from src.config import Settings

logger = structlog.get_logger(__name__)

_pending_sends: set[asyncio.Task] = set()

_ACTIVATION_BODY = (
    "Hello {name},\n\n"
    "Use the code below to activate your account at {app_name}:\n\n"
    "    {code}\n\n"
    "The code expires one minute after this email was sent. If it has\n"
    "expired, request a new one from the activation page.\n"
)


def schedule_send(coro) -> asyncio.Task:
    """Run a send coroutine in the background and track it until done."""
    task = asyncio.create_task(coro)
    _pending_sends.add(task)
    task.add_done_callback(_pending_sends.discard)
    return task


async def await_pending_emails(timeout: float = 5.0) -> None:
    """Wait for outstanding background sends; called during shutdown.

    Args:
        timeout: Maximum seconds to wait
    """
    if not _pending_sends:
        return

    logger.info("draining_pending_emails", count=len(_pending_sends))
    try:
        await asyncio.wait_for(
            asyncio.gather(*_pending_sends, return_exceptions=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "pending_emails_timeout",
            remaining=len(_pending_sends),
            timeout=timeout,
        )


def _has_line_break(value: str) -> bool:
    return "\r" in value or "\n" in value


class EmailService:
    """Notifier for account activation codes."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_activation_message(
        self,
        to_email: str,
        recipient_name: str,
        code: str,
        resend: bool = False,
    ) -> str:
        """Render the raw RFC 5322 message.

        Raises:
            ValueError: If the address would break out of its header line
        """
        if _has_line_break(to_email):
            raise ValueError("Recipient address contains a line break")

        subject = f"Activate your account at {self.settings.mail_app_name}"
        if resend:
            subject += " - New Code"
        body = _ACTIVATION_BODY.format(
            name=recipient_name or to_email,
            app_name=self.settings.mail_app_name,
            code=code,
        )
        return (
            f"From: {self.settings.mail_from}\r\n"
            f"To: {to_email}\r\n"
            f"Subject: {subject}\r\n"
            f"Content-Type: text/plain; charset=utf-8\r\n"
            f"\r\n"
            f"{body}"
        )

    async def deliver_activation_email(
        self,
        to_email: str,
        recipient_name: str,
        code: str,
        resend: bool = False,
    ) -> bool:
        """Send the activation email via SMTP.

        Returns True on success, False on failure. Never raises.
        """
        if _has_line_break(to_email):
            logger.warning("activation_email_failed", reason="invalid_address")
            return False

        message = self.build_activation_message(to_email, recipient_name, code, resend)

        try:
            await aiosmtplib.send(
                message,
                sender=self.settings.mail_from,
                recipients=[to_email],
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.smtp_username or None,
                password=self.settings.smtp_password or None,
                use_tls=self.settings.smtp_use_tls,
            )
        except Exception as e:
            logger.error("activation_email_failed", to=to_email, error=str(e))
            return False

        logger.info("activation_email_sent", to=to_email, resend=resend)
        return True

    def send_activation_email(
        self,
        to_email: Optional[str],
        recipient_name: str,
        code: str,
        resend: bool = False,
    ) -> None:
        """Queue an activation email without waiting for delivery."""
        if not to_email:
            logger.warning("activation_email_skipped", reason="no_address")
            return
        if _has_line_break(to_email):
            logger.warning("activation_email_skipped", reason="invalid_address")
            return
        if not self.settings.mail_enabled:
            logger.info("activation_email_skipped", to=to_email, reason="mail_disabled")
            return
        schedule_send(
            self.deliver_activation_email(to_email, recipient_name, code, resend)
        )
