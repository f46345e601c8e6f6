import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

from clients.exceptions import FetchError, UnrecognizedPayloadShape
from clients.impl.meli_client import MeliClient
from models.logic_models import DetectedPayload, NormalizedListing, PayloadShape

ID_FIELDS = ("id", "item_id")
PRICE_FIELDS = ("price", "sale_price", "listing_price")
TITLE_FIELDS = ("title", "item_title")


def detect_payload_shape(payload: Any, allow_competition_items: bool = False) -> DetectedPayload:
    """
    Decides once which of the known shapes the competitor payload has.

    Priority: bare list, `results`, `items`, then `competition_items` when the
    item-competition endpoint is in use. Anything else raises UnrecognizedPayloadShape.
    """
    if isinstance(payload, list):
        return DetectedPayload(shape=PayloadShape.LIST, records=payload)

    if isinstance(payload, dict):
        if isinstance(payload.get("results"), list):
            return DetectedPayload(shape=PayloadShape.RESULTS, records=payload["results"])
        if isinstance(payload.get("items"), list):
            return DetectedPayload(shape=PayloadShape.ITEMS, records=payload["items"])
        if allow_competition_items and isinstance(payload.get("competition_items"), list):
            return DetectedPayload(shape=PayloadShape.COMPETITION_ITEMS, records=payload["competition_items"])

    raise UnrecognizedPayloadShape(payload)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, dict):
        value = value.get("amount")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _as_identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    value = str(value).strip()
    return value or None


def extract_identifier(record: Dict[str, Any]) -> Optional[str]:
    for field in ID_FIELDS:
        identifier = _as_identifier(record.get(field))
        if identifier:
            return identifier
    return None


def extract_seller_id(record: Dict[str, Any]) -> Optional[str]:
    seller_id = _as_identifier(record.get("seller_id"))
    if seller_id is None and isinstance(record.get("seller"), dict):
        seller_id = _as_identifier(record["seller"].get("id"))
    return seller_id


def extract_price(record: Dict[str, Any]) -> Optional[float]:
    for field in PRICE_FIELDS:
        price = _as_number(record.get(field))
        if price is not None:
            return price
    return None


def extract_title(record: Dict[str, Any]) -> Optional[str]:
    for field in TITLE_FIELDS:
        title = record.get(field)
        if title is not None:
            return str(title)
    return None


class MeliService:
    def __init__(
            self,
            meli_client: MeliClient,
            competition_source: str = "product",
            title_lookup_workers: int = 5,
            lookup_timeout: Optional[float] = 10.0
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._client = meli_client
        self.competition_source = competition_source
        self._title_lookup_workers = max(1, title_lookup_workers)
        self._lookup_timeout = lookup_timeout

    async def fetch_competitors(self, product_id: str) -> Any:
        if not product_id:
            raise ValueError("Product ID is required.")
        if self.competition_source == "item":
            return await self._client.get_item_competition(product_id)
        return await self._client.get_product_items(product_id)

    async def get_competitors(self, product_id: str) -> List[NormalizedListing]:
        payload = await self.fetch_competitors(product_id)
        return await self.normalize_listings(payload)

    async def normalize_listings(self, payload: Any) -> List[NormalizedListing]:
        detected = detect_payload_shape(payload, allow_competition_items=self.competition_source == "item")
        self.logger.debug(f"Payload shape: {detected.shape.value}, {len(detected.records)} records.")

        listings: List[NormalizedListing] = []
        missing_title: List[int] = []
        for record in detected.records:
            if not isinstance(record, dict):
                continue
            identifier = extract_identifier(record)
            if identifier is None:
                continue

            title = extract_title(record)
            if title is None:
                missing_title.append(len(listings))

            listings.append(NormalizedListing(
                id=identifier,
                seller_id=extract_seller_id(record),
                title=title or "",
                price=extract_price(record),
            ))

        dropped = len(detected.records) - len(listings)
        if dropped:
            self.logger.info(f"Dropped {dropped} records without a usable identifier.")

        if missing_title:
            await self._fill_missing_titles(listings, missing_title)

        return listings

    async def _fill_missing_titles(self, listings: List[NormalizedListing], positions: List[int]) -> None:
        semaphore = asyncio.Semaphore(self._title_lookup_workers)

        async def lookup(position: int) -> str:
            async with semaphore:
                return await self.resolve_title(listings[position].id)

        # gather keeps input order, so positions and titles line up
        titles = await asyncio.gather(*(lookup(position) for position in positions))
        for position, title in zip(positions, titles):
            listings[position].title = title

    async def resolve_title(self, item_id: str) -> str:
        try:
            item = await asyncio.wait_for(self._client.get_item(item_id), timeout=self._lookup_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Title lookup for {item_id} took longer than {self._lookup_timeout}s, leaving it empty.")
            return ""
        except FetchError as e:
            self.logger.warning(f"Could not resolve title for {item_id}: {e}")
            return ""
        return item.title or ""

    async def get_seller_nickname(self, seller_id: str) -> Optional[str]:
        try:
            user = await asyncio.wait_for(self._client.get_user(seller_id), timeout=self._lookup_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Nickname lookup for seller {seller_id} timed out.")
            return None
        except FetchError as e:
            self.logger.warning(f"Could not resolve nickname for seller {seller_id}: {e}")
            return None
        return user.nickname or None
