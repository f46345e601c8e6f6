import logging

import httpx

from clients.exceptions import NotificationDeliveryError


class WhatsAppClient:
    """WhatsApp gateway taking phone, apikey and text as query parameters (CallMeBot style)."""

    def __init__(self, http_client: httpx.AsyncClient, phone: str, api_key: str,
                 api_url: str = "https://api.callmebot.com/whatsapp.php"):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._client = http_client
        self._phone = phone
        self._api_key = api_key
        self._api_url = api_url

    async def send(self, message: str) -> None:
        if not self._phone or not self._api_key:
            raise NotificationDeliveryError("WhatsApp phone or API key is not configured.")

        # httpx URL-encodes the text
        params = {"phone": self._phone, "apikey": self._api_key, "text": message}
        try:
            response = await self._client.get(self._api_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationDeliveryError(
                f"WhatsApp gateway rejected the message: HTTP {e.response.status_code} {e.response.text[:200]}") from e
        except httpx.RequestError as e:
            raise NotificationDeliveryError(f"WhatsApp gateway unreachable: {e}") from e
        self.logger.info("WhatsApp message sent.")
