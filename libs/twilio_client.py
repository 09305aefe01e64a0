"""
Twilio SMS client used for SOS alerts.
"""

import logging
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from libs.config import Config

logger = logging.getLogger(__name__)


class TwilioClient:
    """Wrapper for the Twilio SMS API"""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_phone: Optional[str] = None,
    ):
        self.account_sid = account_sid or Config.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or Config.TWILIO_AUTH_TOKEN
        self.from_phone = from_phone or Config.TWILIO_PHONE_NUMBER

        if not all([self.account_sid, self.auth_token, self.from_phone]):
            raise ValueError(
                "Missing Twilio configuration. Please set TWILIO_ACCOUNT_SID, "
                "TWILIO_AUTH_TOKEN, and TWILIO_PHONE_NUMBER in your .env file"
            )

        self.client = Client(self.account_sid, self.auth_token)

    def send_sms(self, to_phone: str, message: str) -> dict:
        """
        Send an SMS message

        Args:
            to_phone: Recipient phone number (E.164 format, e.g., +1234567890)
            message: Message content

        Returns:
            dict with status ("sent" or "failed"), sid, to and error
        """
        try:
            msg = self.client.messages.create(body=message, from_=self.from_phone, to=to_phone)
        except TwilioRestException as e:
            logger.warning("Twilio rejected SMS to %s: %s", to_phone, e)
            return {"status": "failed", "sid": None, "to": to_phone, "error": str(e)}

        return {"status": "sent", "sid": msg.sid, "to": msg.to, "error": None}


# Singleton instance
_twilio_client: Optional[TwilioClient] = None


def get_twilio_client() -> TwilioClient:
    """Get or create the Twilio client singleton"""
    global _twilio_client
    if _twilio_client is None:
        _twilio_client = TwilioClient()
    return _twilio_client
