import logging
import smtplib
from email.message import EmailMessage
from socket import gaierror, timeout

from config_models import EmailConfig

logger = logging.getLogger(__name__)


class MailerError(Exception):
    """Exception raised for email sending errors."""

    pass


class Mailer:
    """SMTP sender for booking notifications."""

    def __init__(self, config: EmailConfig):
        self.config = config

    @property
    def enabled(self) -> bool:
        return bool(self.config.enabled and self.config.smtp_host)

    @property
    def internal_email(self) -> str:
        return self.config.internal_email

    def send(self, recipient: str, subject: str, body: str) -> bool:
        """Send a plain-text email, blind-copying the internal mailbox.

        Args:
            recipient: Email recipient address.
            subject: Email subject.
            body: Email body text.

        Returns:
            True if email was sent successfully.

        Raises:
            MailerError: If email sending fails.
        """
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.config.sender
        message["To"] = recipient
        if self.config.internal_email:
            message["Bcc"] = self.config.internal_email
        message.set_content(body)

        try:
            logger.info(f"Sending email to {recipient} with subject: {subject}")
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=30) as server:
                server.starttls()
                if self.config.smtp_user:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.send_message(message)
            logger.info(f"Email sent successfully to {recipient}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            raise MailerError(f"Email authentication failed: {e}")

        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused: {e}")
            raise MailerError(f"Email recipients refused: {e}")

        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            raise MailerError(f"Failed to send email: {e}")

        except (gaierror, timeout) as e:
            logger.error(f"Network error while sending email: {e}")
            raise MailerError(f"Network error: could not connect to mail server: {e}")

        except OSError as e:
            logger.error(f"OS error while sending email: {e}")
            raise MailerError(f"Failed to send email: {e}")
