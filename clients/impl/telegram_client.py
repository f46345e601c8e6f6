import logging

import httpx
from pydantic import ValidationError

from clients.exceptions import NotificationDeliveryError
from models.meli_models import TelegramSendResult

# Telegram rejects longer texts
MAX_MESSAGE_LENGTH = 4096


class TelegramClient:
    def __init__(self, http_client: httpx.AsyncClient, bot_token: str, chat_id: str,
                 api_url: str = "https://api.telegram.org"):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._client = http_client
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = api_url.rstrip("/")

    async def send(self, message: str) -> None:
        if not self._bot_token or not self._chat_id:
            raise NotificationDeliveryError("Telegram bot token or chat id is not configured.")

        url = f"{self._api_url}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": message[:MAX_MESSAGE_LENGTH],
            "disable_web_page_preview": True,
        }
        try:
            response = await self._client.post(url, json=payload)
        except httpx.RequestError as e:
            raise NotificationDeliveryError(f"Telegram unreachable: {e}") from e

        try:
            result = TelegramSendResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise NotificationDeliveryError(
                f"Unexpected Telegram response (HTTP {response.status_code}): {response.text[:200]}") from e

        if not result.ok:
            raise NotificationDeliveryError(f"Telegram rejected the message: {result.error_code} {result.description}")
        self.logger.info("Telegram message sent.")
