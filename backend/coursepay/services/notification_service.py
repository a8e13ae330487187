"""
Enrollment email notifications.

Fire-and-forget: settlement has already committed by the time these run,
so delivery problems are logged and reported as ``False``, never raised.
"""

from __future__ import annotations

from html import escape
import logging
import re
from typing import Optional

import resend

from ..core.config import settings

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends transactional emails through Resend, or logs them in console mode."""

    def __init__(
        self,
        *,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
    ) -> None:
        self.provider = provider or settings.email_provider
        if api_key is None and settings.resend_api_key is not None:
            api_key = settings.resend_api_key.get_secret_value()
        self._api_key = api_key
        self.from_email = from_email or settings.from_email
        if self.provider == "resend" and not self._api_key:
            logger.warning("Resend selected but RESEND_API_KEY is empty; falling back to console")
            self.provider = "console"

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        text = re.sub(r"<[^>]+>", "", html_content)
        return re.sub(r"\s+", " ", text).strip()

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        if self.provider == "console":
            logger.info(
                "Email (console) to %s - Subject: %s",
                to_email,
                subject,
                extra={"evt": "email_console", "to_email": to_email},
            )
            return True

        resend.api_key = self._api_key
        try:
            resend.Emails.send(
                {
                    "from": self.from_email,
                    "to": to_email,
                    "subject": subject,
                    "html": html_content,
                    "text": self._html_to_text(html_content),
                }
            )
        except Exception as exc:
            logger.error(
                "Failed to send email to %s: %s",
                to_email,
                exc,
                extra={"evt": "email_failed", "to_email": to_email},
            )
            return False
        logger.info("Email sent successfully to %s - Subject: %s", to_email, subject)
        return True

    def send_enrollment_confirmation(
        self,
        *,
        to_email: str,
        student_name: str,
        course_title: str,
        reference: str,
    ) -> bool:
        subject = f"You're enrolled in {course_title}"
        html = (
            f"<p>Hi {escape(student_name or 'there')},</p>"
            f"<p>Your payment was confirmed and you now have access to "
            f"<strong>{escape(course_title)}</strong>.</p>"
            f"<p>Payment reference: {escape(reference)}</p>"
        )
        return self.send_email(to_email, subject, html)
