"""
Email Service

Handles sending applicant-facing emails via SMTP.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from cv_intake.config import Config
from cv_intake.utils.exceptions import NotificationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

CONFIRMATION_SUBJECT = "We Received Your Application"


@dataclass
class EmailJob:
    """A prepared message; ``send_at`` is None for immediate delivery"""
    to: str
    from_: str
    subject: str
    body: str
    send_at: Optional[datetime] = None


def follow_up_body(name: str) -> str:
    return (
        f"Dear {name},\n\n"
        "Thank you for submitting your application. Your CV is currently under review.\n\n"
        "Best regards,\n"
        "The Hiring Team"
    )


def confirmation_body(name: str) -> str:
    return (
        f"Dear {name},\n\n"
        "Thank you for applying. We have received your application and CV, "
        "and our team will be in touch with you soon.\n\n"
        "Best regards,\n"
        "The Hiring Team"
    )


class EmailService:
    """Service for sending emails"""

    def __init__(self, config: Config):
        self.config = config
        self.enabled = bool(
            config.smtp.host and
            config.smtp.user and
            config.smtp.password
        )

    @property
    def sender(self) -> str:
        return f'"{self.config.smtp.from_name}" <{self.config.smtp.from_email}>'

    def build_job(self, to_email: str, subject: str, body: str, send_at: Optional[datetime] = None) -> EmailJob:
        return EmailJob(to=to_email, from_=self.sender, subject=subject, body=body, send_at=send_at)

    async def send_confirmation(self, to_email: str, name: str) -> bool:
        """
        Send the application-received confirmation.

        Returns:
            True if sent, False if SMTP is not configured

        Raises:
            NotificationError: If the SMTP send fails
        """
        job = self.build_job(to_email, CONFIRMATION_SUBJECT, confirmation_body(name))
        return await self.send_email(job)

    async def send_email(self, job: EmailJob) -> bool:
        """
        Send a prepared message now, ignoring ``job.send_at``.

        Returns:
            True if sent, False if SMTP is not configured

        Raises:
            NotificationError: If the SMTP send fails
        """
        if not self.enabled:
            logger.warning("[EmailService] SMTP not configured - skipping email send")
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = job.subject
        message["From"] = job.from_
        message["To"] = job.to
        message.attach(MIMEText(job.body, "plain"))
        message.attach(MIMEText(self._create_email_html(job.body), "html"))

        # SMTP_SECURE=true means direct TLS (port 465), false means STARTTLS (port 587)
        use_tls = self.config.smtp.secure
        start_tls = not self.config.smtp.secure

        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.smtp.host,
                port=self.config.smtp.port,
                use_tls=use_tls,
                start_tls=start_tls,
                username=self.config.smtp.user,
                password=self.config.smtp.password,
                timeout=self.config.HTTP_TIMEOUT,
            )
        except Exception as e:
            error_msg = f"Failed to send email: {str(e)}"
            logger.error(f"[EmailService] {error_msg}", exc_info=True)
            raise NotificationError(error_msg, "EmailService") from e

        logger.info(f"[EmailService] ✅ Email '{job.subject}' sent to {job.to}")
        return True

    def _create_email_html(self, body: str) -> str:
        """Wrap a plain-text body in a minimal HTML layout"""
        paragraphs = "".join(
            f"<p>{escape(block).replace(chr(10), '<br>')}</p>"
            for block in body.split("\n\n")
            if block.strip()
        )
        return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    </style>
</head>
<body>
    <div class="container">{paragraphs}</div>
</body>
</html>
"""
