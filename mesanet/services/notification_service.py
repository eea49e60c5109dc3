"""
Notification service for account emails.

Messages are composed here and delivered by an ``EmailSender`` through the
background task queue, so a slow or failing mail transport never affects
the request that triggered the email.

The bundled ``EmailSender`` only logs messages; deployments replace it with
a real transport.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from mesanet.core.config import settings
from mesanet.core.tasks import TaskQueue, task_queue
from mesanet.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    """A plain-text email."""

    to: str
    subject: str
    body: str
    sender: str = settings.email_from


class EmailSender:
    """Mail transport that writes messages to the application log."""

    async def send(self, message: EmailMessage) -> None:
        """Deliver one message."""
        logger.info(
            f"Email to {message.to}: {message.subject}",
            extra={"email_to": message.to, "email_subject": message.subject},
        )


class NotificationService:
    """
    Composes account notification emails and queues their delivery.

    Every ``send_*`` method returns immediately; delivery failures are
    retried and logged by the task queue.

    Example:
        notifications.send_role_changed(user, added=["MANAGER"], removed=[])
    """

    def __init__(self, sender: EmailSender | None = None, queue: TaskQueue | None = None):
        self.sender = sender or EmailSender()
        self.queue = queue or task_queue

    def _dispatch(self, name: str, message: EmailMessage) -> None:
        self.queue.submit(name, self.sender.send, message)

    @staticmethod
    def _greeting(user: User) -> str:
        return f"Hello {user.first_name},"

    def send_email_verification_code(self, user: User, code: str) -> None:
        self._dispatch(
            "email_verification_code",
            EmailMessage(
                to=user.email,
                subject="Verify your email address",
                body=(
                    f"{self._greeting(user)}\n\n"
                    f"Your verification code is {code}. It expires in "
                    f"{settings.email_code_expire_minutes} minutes.\n\n"
                    f"Sign in at {settings.app_url}/login once verified."
                ),
            ),
        )

    def send_password_reset_code(self, user: User, code: str) -> None:
        self._dispatch(
            "password_reset_code",
            EmailMessage(
                to=user.email,
                subject="Reset your password",
                body=(
                    f"{self._greeting(user)}\n\n"
                    f"Your password reset code is {code}. It expires in "
                    f"{settings.email_code_expire_minutes} minutes.\n\n"
                    "If you did not request a reset, you can ignore this email."
                ),
            ),
        )

    def send_two_factor_enabled(self, user: User) -> None:
        self._dispatch(
            "two_factor_enabled",
            EmailMessage(
                to=user.email,
                subject="Two-factor authentication enabled",
                body=(
                    f"{self._greeting(user)}\n\n"
                    "Two-factor authentication is now enabled on your account. "
                    "Keep your backup codes somewhere safe.\n\n"
                    f"Manage your security settings at {settings.app_url}/account/security."
                ),
            ),
        )

    def send_two_factor_disabled(self, user: User) -> None:
        self._dispatch(
            "two_factor_disabled",
            EmailMessage(
                to=user.email,
                subject="Two-factor authentication disabled",
                body=(
                    f"{self._greeting(user)}\n\n"
                    "Two-factor authentication was turned off for your account. "
                    "If this was not you, reset your password immediately at "
                    f"{settings.app_url}/forgot-password."
                ),
            ),
        )

    def send_role_changed(
        self,
        user: User,
        added: Iterable[str],
        removed: Iterable[str],
    ) -> None:
        lines = [f"{self._greeting(user)}", "", "Your roles have changed."]
        added, removed = list(added), list(removed)
        if added:
            lines.append(f"Added: {', '.join(added)}")
        if removed:
            lines.append(f"Removed: {', '.join(removed)}")
        lines += ["", f"Current roles: {', '.join(user.role_names) or 'none'}"]

        self._dispatch(
            "role_changed",
            EmailMessage(to=user.email, subject="Your roles have changed", body="\n".join(lines)),
        )

    def send_account_status(self, user: User, is_active: bool, reason: str | None = None) -> None:
        if is_active:
            subject = "Your account has been activated"
            text = f"Your account is active again. Sign in at {settings.app_url}/login."
        else:
            subject = "Your account has been suspended"
            text = "Your account has been suspended and all sessions were signed out."
            if reason:
                text += f"\nReason: {reason}"

        self._dispatch(
            "account_status",
            EmailMessage(
                to=user.email,
                subject=subject,
                body=f"{self._greeting(user)}\n\n{text}",
            ),
        )
