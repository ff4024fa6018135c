"""Outbound SMS through the Twilio REST API."""

import re
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from followup.core.exceptions import ConfigurationError, TransportError
from followup.core.logging import get_logger

logger = get_logger(__name__)

_SEPARATORS = re.compile(r"[\s.\-()]")


def normalize_phone_number(phone: str, country_code: str = "+33") -> str:
    """Convert a national number to international format.

    ``06 12 34 56 78`` becomes ``+33612345678``; numbers already starting
    with ``+`` only lose their separators, and ``00`` prefixes become ``+``.
    """
    cleaned = _SEPARATORS.sub("", phone or "")
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]
    if cleaned.startswith("0"):
        return country_code + cleaned[1:]
    return country_code + cleaned


class SmsReceipt(BaseModel):
    message_id: Optional[str] = None
    status: Optional[str] = None


class SmsTransport(ABC):
    @abstractmethod
    async def send(self, to: str, body: str) -> SmsReceipt:
        """Send one SMS to an already-normalized number; raise on failure."""
        pass


class TwilioSmsTransport(SmsTransport):
    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        api_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 20.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def send(self, to: str, body: str) -> SmsReceipt:
        if not (self.account_sid and self.auth_token and self.from_number):
            raise ConfigurationError(
                "Twilio credentials not configured (TWILIO_ACCOUNT_SID, "
                "TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER)",
                setting="TWILIO_ACCOUNT_SID",
            )

        url = f"{self.api_url}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    data={"To": to, "From": self.from_number, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.TimeoutException as e:
            raise TransportError("Twilio", f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError("Twilio", str(e)) from e

        if response.status_code not in (200, 201):
            raise TransportError(
                "Twilio", f"API returned {response.status_code}: {response.text[:200]}"
            )

        data = response.json()
        receipt = SmsReceipt(message_id=data.get("sid"), status=data.get("status"))
        logger.info(f"SMS queued to {to} (sid={receipt.message_id}, status={receipt.status})")
        return receipt
