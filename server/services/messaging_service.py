# External messaging gateway (email / SMS)
# Accepts a contact identifier and a message string; success or failure only

import httpx
import logging
from typing import Dict, Any, Optional

from db.errors import NotificationFailure

logger = logging.getLogger(__name__)


class MessagingService:
    """
    Messaging gateway client

    Posts {"to": contact, "message": text} to the configured gateway. Without a
    gateway URL the service runs in mock mode and only logs the message.
    """

    def __init__(self, gateway_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout_seconds: float = 5.0, sender: str = "Catering",
                 transport: Optional[httpx.BaseTransport] = None):
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.sender = sender
        self.transport = transport

        if not self.gateway_url:
            logger.warning("Messaging gateway not configured, running in mock mode")
            self.mock_mode = True
        else:
            self.mock_mode = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MessagingService":
        """
        Build the service from the notifications config section
        """
        section = config.get('notifications', {})
        gateway_url = section.get('gateway_url') or None
        # unresolved ${ENV_VAR} placeholders mean the variable is unset
        if gateway_url and gateway_url.startswith('${'):
            gateway_url = None
        api_key = section.get('api_key') or None
        if api_key and api_key.startswith('${'):
            api_key = None
        return cls(
            gateway_url=gateway_url,
            api_key=api_key,
            timeout_seconds=section.get('timeout_seconds', 5.0),
            sender=section.get('sender', 'Catering')
        )

    def send(self, contact: str, message: str) -> bool:
        """
        Deliver a message

        Args:
            contact: email address or phone number
            message: message body

        Returns:
            True when the gateway accepted the message

        Raises:
            NotificationFailure: missing contact, transport error or gateway rejection
        """
        if not contact:
            raise NotificationFailure("Customer has no contact on file")

        if self.mock_mode:
            return self._mock_send(contact, message)

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "from": self.sender,
            "to": contact,
            "channel": "email" if "@" in contact else "sms",
            "message": message
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(self.gateway_url, json=payload, headers=headers)
                response.raise_for_status()

        except httpx.HTTPStatusError as e:
            logger.error(f"Messaging gateway rejected message: {e.response.status_code}")
            raise NotificationFailure(f"Gateway returned {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error(f"Messaging gateway request failed: {str(e)}")
            raise NotificationFailure(f"Gateway request failed: {str(e)}")

        logger.info(f"Message delivered to {self._mask(contact)}")
        return True

    def _mock_send(self, contact: str, message: str) -> bool:
        logger.info(f"[mock] message to {self._mask(contact)}: {message}")
        return True

    @staticmethod
    def _mask(contact: str) -> str:
        return f"{contact[:3]}***" if len(contact) > 3 else "***"
