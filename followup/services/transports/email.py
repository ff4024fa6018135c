"""Outbound email through a Resend-compatible HTTP API."""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from followup.core.exceptions import ConfigurationError, TransportError
from followup.core.logging import get_logger

logger = get_logger(__name__)


class EmailMessage(BaseModel):
    sender: str
    to: str
    subject: str
    body: str


class EmailReceipt(BaseModel):
    id: Optional[str] = None


class EmailTransport(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailReceipt:
        """Send one message; raise on failure."""
        pass


class ResendEmailTransport(EmailTransport):
    """POSTs plain-text mail to the provider and returns its message id."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 20.0,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> EmailReceipt:
        if not self.api_key:
            raise ConfigurationError("email API key is not set", setting="RESEND_API_KEY")

        payload = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "text": message.body,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException as e:
            raise TransportError("Email", f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError("Email", str(e)) from e

        if response.status_code not in (200, 201, 202):
            raise TransportError(
                "Email", f"provider returned {response.status_code}: {response.text[:200]}"
            )

        data = response.json() if response.content else {}
        receipt = EmailReceipt(id=data.get("id"))
        logger.info(f"Email sent to {message.to} (id={receipt.id})")
        return receipt
