import asyncio
import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional

from dotenv import load_dotenv

from fiesta.errors import MailDeliveryFailed

logger = logging.getLogger(__name__)

load_dotenv()

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
MAIL_FROM = os.getenv("MAIL_FROM") or SMTP_USER
EVENT_NAME = os.getenv("EVENT_NAME", "Cricket Fiesta")


TEMPLATES = {
    "otp": (
        "Hello {name},\n\n"
        "Your {event} login code is {code}. It expires in {minutes} minutes.\n\n"
        "If you did not request this code you can ignore this email."
    ),
    "food_collected": (
        "Hello {name},\n\n"
        "Your {preference} meal was collected at {collected_at}. Enjoy {event}!"
    ),
    "food_registration": (
        "Hello {name},\n\n"
        "You are registered for food at {event} with trainee id {trainee_id}.\n"
        "Meal preference: {preference}."
    ),
}


def render(template: str, data: dict) -> str:
    if template not in TEMPLATES:
        raise ValueError(f"Unknown mail template: {template}")
    return TEMPLATES[template].format(event=EVENT_NAME, **data)


class Mailer:
    """Sends plain-text mail over SMTP.

    ``send`` is for actions where the caller must know about failure.
    ``send_best_effort`` is for notifications that must never fail the
    request that triggered them.
    """

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: Optional[str] = SMTP_USER,
        password: Optional[str] = SMTP_PASSWORD,
        sender: Optional[str] = MAIL_FROM,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user

    @property
    def enabled(self) -> bool:
        return bool(self.user)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as smtp:
            smtp.login(self.user, self.password or "")
            smtp.send_message(message)

    async def send(self, to: str, subject: str, template: str, data: dict) -> None:
        if not self.enabled:
            raise MailDeliveryFailed("Mail is not configured on this server")

        message = EmailMessage()
        message["From"] = f"{EVENT_NAME} <{self.sender}>"
        message["To"] = to
        message["Subject"] = subject
        message.set_content(render(template, data))

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryFailed(f"Could not send email to {to}") from exc
        logger.info("Sent %s mail to %s", template, to)

    async def send_best_effort(self, to: str, subject: str, template: str, data: dict) -> bool:
        try:
            await self.send(to, subject, template, data)
        except MailDeliveryFailed:
            logger.exception("Best-effort %s mail to %s was not delivered", template, to)
            return False
        return True


_mailer = Mailer()


def get_mailer() -> Mailer:
    return _mailer
