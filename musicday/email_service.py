"""
Email transport using Resend
send() never raises; it returns {"id": ...} on success or {"error": ...}
so batch senders can record the provider detail per recipient.
"""

import logging
from typing import Optional, Union

import resend

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class ResendTransport:
    """Transactional email sender backed by the Resend API"""

    def __init__(self, from_address: str = EMAIL_FROM_ADDRESS, api_key: Optional[str] = RESEND_API_KEY):
        self.from_address = from_address
        self.api_key = api_key

    def send(
        self,
        to: Union[str, list[str]],
        subject: str,
        html: str,
        headers: Optional[dict[str, str]] = None,
    ) -> dict:
        if not self.api_key:
            logger.error("❌ No email service configured - RESEND_API_KEY missing")
            return {"error": "Email service not configured"}

        recipients = [to] if isinstance(to, str) else to
        email_data = {
            "from": self.from_address,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        if headers:
            email_data["headers"] = headers

        try:
            logger.info(f"📤 Sending email via Resend to: {recipients}")
            response = resend.Emails.send(email_data)
        except Exception as e:
            logger.error(f"❌ Email send error to {recipients}: {e}")
            return {"error": str(e)}

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        if not message_id:
            logger.error(f"❌ Resend returned no message id for {recipients}: {response}")
            return {"error": "Email provider returned no message id"}

        logger.info(f"✅ Email sent successfully via Resend: {message_id}")
        return {"id": message_id}


_transport: Optional[ResendTransport] = None


def get_transport() -> ResendTransport:
    global _transport
    if _transport is None:
        _transport = ResendTransport()
    return _transport
