import logging
from typing import Optional

import requests

from vocabdrop.config import settings

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"


class WhatsAppService:
    """WhatsApp Cloud API client for outgoing messages."""

    def __init__(
        self,
        token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.token = token or settings.whatsapp_token
        self.phone_number_id = phone_number_id or settings.whatsapp_phone_number_id
        self.api_version = api_version or settings.whatsapp_api_version
        self.timeout = timeout or settings.whatsapp_timeout_seconds
        self._session = None
        if self.token and self.phone_number_id:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                }
            )
            logger.info("WhatsApp service initialized")
        else:
            logger.warning("WhatsApp credentials not configured, messages will be logged only")

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_API_URL}/{self.api_version}/{self.phone_number_id}/messages"

    def send_text(self, to: str, body: str) -> tuple[bool, Optional[str], Optional[str]]:
        """
        Send a free-form text message.

        Returns:
            tuple: (success, message_id, error_message)
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to.lstrip("+"),
            "type": "text",
            "text": {"body": body},
        }
        return self._post(to, payload)

    def send_template(
        self,
        to: str,
        name: str,
        language: str,
        body_params: Optional[list[str]] = None,
    ) -> tuple[bool, Optional[str], Optional[str]]:
        """
        Send an approved template message.

        Returns:
            tuple: (success, message_id, error_message)
        """
        template: dict = {"name": name, "language": {"code": language}}
        if body_params:
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": p} for p in body_params],
                }
            ]
        payload = {
            "messaging_product": "whatsapp",
            "to": to.lstrip("+"),
            "type": "template",
            "template": template,
        }
        return self._post(to, payload)

    def _post(self, to: str, payload: dict) -> tuple[bool, Optional[str], Optional[str]]:
        if not self._session:
            logger.info(f"[DRY RUN] Would send WhatsApp {payload['type']} message to {to}")
            return True, "dry-run-id", None

        try:
            response = self._session.post(self.messages_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            error_msg = str(e)
            logger.error(f"Failed to send WhatsApp message to {to}: {error_msg}")
            return False, None, error_msg

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            error_msg = (data.get("error") or {}).get("message") or (
                f"WhatsApp API error: {response.status_code}"
            )
            logger.error(f"Failed to send WhatsApp message to {to}: {error_msg}")
            return False, None, error_msg

        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id")
        logger.info(f"WhatsApp message sent to {to}, id: {message_id}")
        return True, message_id, None


# Singleton instance
whatsapp_service = WhatsAppService()
