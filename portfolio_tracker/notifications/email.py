"""Email notification service."""
import logging
import smtplib
from email.mime.text import MIMEText

from ..config import EmailConfig

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Portfolio report"


class EmailNotifier:
    """Send portfolio reports via email (SMTP with STARTTLS)."""

    def __init__(self, config: EmailConfig) -> None:
        self.alert_email = config.alert_email
        self.smtp_server = config.smtp_server
        self.smtp_port = config.smtp_port
        self.sender_email = config.sender_email
        self.sender_password = config.sender_password

    def _build_message(self, body: str, subject: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = self.sender_email
        msg["To"] = self.alert_email
        msg["Subject"] = subject or DEFAULT_SUBJECT
        return msg

    async def send_alert(self, message: str, subject: str = "") -> bool:
        if not self.alert_email:
            logger.debug("No recipient configured, skipping email")
            return False

        if not self.sender_email or not self.sender_password:
            logger.warning("Email credentials not configured")
            return False

        msg = self._build_message(message, subject)
        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.sender_email, self.sender_password)
                server.send_message(msg)
            logger.info("Report email sent to %s", self.alert_email)
            return True
        except Exception as e:
            logger.error("Failed to send email: %s", e)
            return False

    async def send_log(self, message: str, silent: bool = True) -> bool:
        """Routine reports are not emailed; only alerts are."""
        return False
