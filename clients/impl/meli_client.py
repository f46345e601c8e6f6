import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from clients.base_http_client import BaseHttpClient
from clients.exceptions import FetchError
from clients.impl.meli_endpoints import (
    ITEM_ATTRIBUTES,
    ITEM_COMPETITION_PATH,
    ITEM_PATH,
    PRODUCT_ITEMS_PATH,
    USER_PATH,
)
from logic.auth import MeliAuthHandler
from models.meli_models import ItemDetail, UserProfile


class MeliClient:

    def __init__(self, base_url: str, http_client: httpx.AsyncClient, auth_handler: Optional[MeliAuthHandler] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.info("Initializing MeliClient...")

        self._client = BaseHttpClient(
            base_url=base_url,
            client=http_client,
            auth_handler=auth_handler
        )

    async def get_product_items(self, product_id: str) -> Any:
        """Competing listings of a catalog product, returned unmodified."""
        return await self._client.get(PRODUCT_ITEMS_PATH.format(product_id=product_id))

    async def get_item_competition(self, item_id: str) -> Any:
        """Catalog competition for one of our own items, returned unmodified."""
        return await self._client.get(ITEM_COMPETITION_PATH.format(item_id=item_id))

    # Item and user lookups only decorate a cycle: a 429 fails them at once instead of retrying
    async def get_item(self, item_id: str) -> ItemDetail:
        response_json = await self._client.get(
            ITEM_PATH.format(item_id=item_id),
            params={"attributes": ITEM_ATTRIBUTES},
            retry_rate_limit=False,
        )
        try:
            return ItemDetail.model_validate(response_json)
        except ValidationError as e:
            raise FetchError(f"Invalid item response for {item_id}: {e}") from e

    async def get_user(self, user_id: str) -> UserProfile:
        self.logger.debug(f"Fetching user info for ID: {user_id}")
        response_json = await self._client.get(
            USER_PATH.format(user_id=user_id),
            authenticated=False,
            retry_rate_limit=False,
        )
        try:
            return UserProfile.model_validate(response_json)
        except ValidationError as e:
            raise FetchError(f"Invalid user response for {user_id}: {e}") from e
