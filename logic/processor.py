import asyncio
import logging
from typing import Optional

from clients.exceptions import FetchError, UnrecognizedPayloadShape
from logic.resolver import DEFAULT_TOP_N, resolve_leader
from models.logic_models import CycleResult, CycleStatus, LeaderSnapshot, NoValidLeader, NormalizedListing
from services.meli_service import MeliService
from services.notification_service import NotificationService
from services.state_store import LeaderStateStore


class Processor:
    """
    One polling cycle: fetch, normalize, resolve, compare, persist, notify.

    The state store is written only when the leader changes, and before the
    notification is attempted. A failed notification leaves the store as is.
    """

    def __init__(
            self,
            meli_service: MeliService,
            state_store: LeaderStateStore,
            notification_service: NotificationService,
            leader_key: str = "seller",
            top_n: int = DEFAULT_TOP_N
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.meli_service = meli_service
        self.state_store = state_store
        self.notification_service = notification_service
        self.leader_key = leader_key
        self.top_n = top_n

    def leader_identity(self, listing: NormalizedListing) -> str:
        if self.leader_key == "seller" and listing.seller_id:
            return listing.seller_id
        return listing.id

    async def run_cycle(self, product_id: str) -> CycleResult:
        self.logger.info(f"Checking leader for {product_id}...")

        try:
            listings = await self.meli_service.get_competitors(product_id)
        except FetchError as e:
            self.logger.error(f"Fetch failed for {product_id}, skipping this cycle: {e}")
            return CycleResult(status=CycleStatus.FAILED, product_id=product_id, error=str(e))
        except UnrecognizedPayloadShape as e:
            self.logger.error(f"Unrecognized payload for {product_id}, skipping this cycle. Raw: {e.payload!r}")
            return CycleResult(status=CycleStatus.FAILED, product_id=product_id, error=str(e))

        ranking = resolve_leader(listings, self.top_n)
        if isinstance(ranking, NoValidLeader):
            self.logger.info(f"No valid leader for {product_id}: {ranking.reason}.")
            return CycleResult(status=CycleStatus.NO_LEADER, product_id=product_id, error=ranking.reason)

        leader = ranking.leader
        snapshot = LeaderSnapshot(product_id=product_id, leader_id=self.leader_identity(leader))
        previous: Optional[str] = await asyncio.to_thread(self.state_store.get_previous, product_id)

        if previous == snapshot.leader_id:
            self.logger.info(f"Leader unchanged for {product_id}: {snapshot.leader_id} at {leader.price}.")
            return CycleResult(
                status=CycleStatus.UNCHANGED,
                product_id=product_id,
                previous_leader_id=previous,
                snapshot=snapshot,
                leader=leader,
                top=ranking.top,
            )

        self.logger.info(f"Leader changed for {product_id}: {previous} -> {snapshot.leader_id} at {leader.price}.")
        try:
            await asyncio.to_thread(self.state_store.record_leader, product_id, snapshot.leader_id)
        except OSError as e:
            self.logger.error(f"Could not persist leader for {product_id}, not notifying: {e}", exc_info=True)
            return CycleResult(
                status=CycleStatus.FAILED,
                product_id=product_id,
                changed=True,
                previous_leader_id=previous,
                snapshot=snapshot,
                leader=leader,
                top=ranking.top,
                error=f"State store write failed: {e}",
            )

        notified = await self.notification_service.notify_leader_change(
            previous_leader_id=previous,
            leader=leader,
            top=ranking.top,
            product_id=product_id,
            captured_at=snapshot.captured_at,
        )
        if not notified:
            self.logger.warning(f"Leader change for {product_id} recorded but notification was not delivered.")

        return CycleResult(
            status=CycleStatus.CHANGED,
            product_id=product_id,
            changed=True,
            previous_leader_id=previous,
            snapshot=snapshot,
            leader=leader,
            top=ranking.top,
            notified=notified,
        )
