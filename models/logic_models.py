from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class PayloadShape(str, Enum):
    LIST = "list"
    RESULTS = "results"
    ITEMS = "items"
    COMPETITION_ITEMS = "competition_items"


class DetectedPayload(BaseModel):
    shape: PayloadShape
    records: List[Any]


class NormalizedListing(BaseModel):
    id: str
    seller_id: Optional[str] = None
    title: str = ""
    price: Optional[float] = None


class LeaderSnapshot(BaseModel):
    product_id: str
    leader_id: str
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LeaderRanking(BaseModel):
    leader: NormalizedListing
    ranked: List[NormalizedListing]
    top: List[NormalizedListing]


class NoValidLeader(BaseModel):
    reason: str = "no competitors with a valid price"


class CycleStatus(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    NO_LEADER = "no_leader"
    FAILED = "failed"


class CycleResult(BaseModel):
    status: CycleStatus
    product_id: str
    changed: bool = False
    previous_leader_id: Optional[str] = None
    snapshot: Optional[LeaderSnapshot] = None
    leader: Optional[NormalizedListing] = None
    top: List[NormalizedListing] = Field(default_factory=list)
    notified: Optional[bool] = None
    error: Optional[str] = None
