import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from clients.exceptions import NotificationDeliveryError
from models.logic_models import NormalizedListing
from services.meli_service import MeliService


class Transport(Protocol):
    async def send(self, message: str) -> None:
        ...


class LogOnlyTransport:
    """Used when no messaging transport is configured."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    async def send(self, message: str) -> None:
        self.logger.info(f"Notification (not delivered, no transport configured):\n{message}")


def _format_price(price: Optional[float]) -> str:
    if price is None:
        return "sin precio"
    return f"${price:,.2f}"


def format_leader_report(
        product_id: str,
        previous_name: Optional[str],
        leader_name: str,
        leader: NormalizedListing,
        top: Sequence[Tuple[str, NormalizedListing]],
        captured_at: Optional[datetime] = None
) -> str:
    """Builds the plain-text message sent when the leader of a product changes."""
    timestamp = (captured_at or datetime.now(timezone.utc)).astimezone().strftime("%d/%m/%Y %H:%M:%S")
    lines = [
        "🔔 CAMBIO DE LÍDER EN CATÁLOGO",
        f"Producto: {product_id}",
        f"Antes: {previous_name or 'sin registro'}",
        f"Ahora: {leader_name}",
        f"Precio: {_format_price(leader.price)}",
    ]
    if leader.title:
        lines.append(f"Publicación: {leader.title} ({leader.id})")
    else:
        lines.append(f"Publicación: {leader.id}")

    lines.append("")
    lines.append(f"Top {len(top)}:")
    for rank, (name, listing) in enumerate(top, start=1):
        lines.append(f"{rank}. {name} - {_format_price(listing.price)}")

    lines.append("")
    lines.append(timestamp)
    return "\n".join(lines)


class NotificationService:
    def __init__(self, transport: Transport, meli_service: MeliService, leader_key: str = "seller"):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._transport = transport
        self._meli_service = meli_service
        self.leader_key = leader_key

    async def _nicknames(self, seller_ids: Sequence[str]) -> Dict[str, str]:
        unique_ids = list(dict.fromkeys(seller_ids))
        nicknames = await asyncio.gather(*(self._meli_service.get_seller_nickname(s) for s in unique_ids))
        return {seller_id: nickname for seller_id, nickname in zip(unique_ids, nicknames) if nickname}

    @staticmethod
    def _listing_name(listing: NormalizedListing, nicknames: Dict[str, str]) -> str:
        if listing.seller_id and listing.seller_id in nicknames:
            return nicknames[listing.seller_id]
        return listing.seller_id or listing.title or listing.id

    async def _previous_name(
            self,
            previous_leader_id: Optional[str],
            known: Sequence[NormalizedListing],
            nicknames: Dict[str, str]
    ) -> Optional[str]:
        if previous_leader_id is None:
            return None
        if self.leader_key == "seller":
            if previous_leader_id in nicknames:
                return nicknames[previous_leader_id]
            nickname = await self._meli_service.get_seller_nickname(previous_leader_id)
            return nickname or previous_leader_id

        for listing in known:
            if listing.id == previous_leader_id and listing.title:
                return listing.title
        title = await self._meli_service.resolve_title(previous_leader_id)
        return title or previous_leader_id

    async def build_message(
            self,
            previous_leader_id: Optional[str],
            leader: NormalizedListing,
            top: Sequence[NormalizedListing],
            product_id: str,
            captured_at: Optional[datetime] = None
    ) -> str:
        listings: List[NormalizedListing] = [leader, *top]
        nicknames = await self._nicknames([listing.seller_id for listing in listings if listing.seller_id])

        previous_name = await self._previous_name(previous_leader_id, listings, nicknames)
        return format_leader_report(
            product_id=product_id,
            previous_name=previous_name,
            leader_name=self._listing_name(leader, nicknames),
            leader=leader,
            top=[(self._listing_name(listing, nicknames), listing) for listing in top],
            captured_at=captured_at,
        )

    async def notify_leader_change(
            self,
            previous_leader_id: Optional[str],
            leader: NormalizedListing,
            top: Sequence[NormalizedListing],
            product_id: str,
            captured_at: Optional[datetime] = None
    ) -> bool:
        """Formats and sends the report. Returns False instead of raising when delivery fails."""
        try:
            message = await self.build_message(previous_leader_id, leader, top, product_id, captured_at)
            await self._transport.send(message)
        except NotificationDeliveryError as e:
            self.logger.error(f"Could not deliver leader change for {product_id}: {e}")
            return False
        except Exception as e:
            self.logger.error(f"Unexpected error while notifying leader change for {product_id}: {e}", exc_info=True)
            return False
        return True
