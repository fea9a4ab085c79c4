"""Outgoing account emails.  Delivery is logged rather than sent."""

import logging

logger = logging.getLogger(__name__)


class LoggingMailer:
    def __init__(self):
        self.outbox: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append((to, subject, body))
        logger.info("Mail to %s: %s", to, subject)
        logger.debug("Mail body for %s:\n%s", to, body)

    def send_password_reset(self, to: str, token: str) -> None:
        self.send(
            to,
            "Password reset",
            f"Use this token to reset your password: {token}",
        )

    def send_verification(self, to: str, token: str) -> None:
        self.send(
            to,
            "Verify your email",
            f"Use this token to verify your email address: {token}",
        )
