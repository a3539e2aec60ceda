"""
Best-effort email reporting of review results.
"""

import smtplib
from email.message import EmailMessage
from typing import Callable, Optional

from diff_reviewer.config import MailSettings
from diff_reviewer.custom_exceptions import NotificationError
from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import ReviewReport

logger = get_logger(__name__)

DEFAULT_SENDER_NAME = "Code Review Bot"


class EmailNotifier:
    """Sends a run's summary by email when all mail settings are present."""

    def __init__(self, settings: MailSettings, timeout: float = 30,
                 smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None):
        self.settings = settings
        self.timeout = timeout
        self._smtp_factory = smtp_factory

    @property
    def enabled(self) -> bool:
        return self.settings.complete

    def build_message(self, report: ReviewReport) -> EmailMessage:
        message = EmailMessage()
        target = report.context.title if report.context is not None else "review"
        message["Subject"] = f"New AI Code Review Feedback: {target}"
        message["From"] = f'"{DEFAULT_SENDER_NAME}" <{self.settings.sender}>'
        message["To"] = ", ".join(self.settings.recipients)
        message.set_content(report.render_summary())
        return message

    def _connect(self) -> smtplib.SMTP:
        if self._smtp_factory is not None:
            return self._smtp_factory(self.settings.host, self.settings.port, timeout=self.timeout)
        if self.settings.secure:
            return smtplib.SMTP_SSL(self.settings.host, self.settings.port, timeout=self.timeout)
        return smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.timeout)

    def send(self, report: ReviewReport) -> None:
        """
        Send the report.

        Raises:
            NotificationError: If the message cannot be delivered
        """
        message = self.build_message(report)
        try:
            with self._connect() as smtp:
                if not self.settings.secure:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls()
                        smtp.ehlo()
                smtp.login(self.settings.user, self.settings.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(str(e)) from e

    def notify(self, report: ReviewReport) -> bool:
        """
        Send the report if configured; never raises.

        Returns:
            True if an email was sent
        """
        if not self.enabled:
            logger.info("Email notification skipped; settings incomplete",
                        context={"missing": self.settings.missing()})
            return False
        try:
            self.send(report)
        except NotificationError as e:
            logger.warning(f"Email notification failed: {e.message}", context={"error_code": e.error_code})
            return False
        logger.info(f"Sent review summary to {len(self.settings.recipients)} recipients")
        return True
