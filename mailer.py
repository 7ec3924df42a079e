import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

import config
from errors import EmailError

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, host: str, port: int, username: Optional[str], password: Optional[str]):
        self.host = host
        self.port = port
        self.username = username
        self.password = password

    def send(self, subject: str, html: str, send_to: str, sent_from: Optional[str] = None,
             reply_to: Optional[str] = None) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sent_from or self.username or ""
        msg["To"] = send_to
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Sending '%s' to %s failed: %s", subject, send_to, e)
            raise EmailError("Email not sent, please try again") from e
        logger.info("Sent '%s' to %s", subject, send_to)


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer(config.EMAIL_HOST, config.EMAIL_PORT, config.EMAIL_USER, config.EMAIL_PASSWORD)
    return _mailer
