from typing import List, Sequence, Union

from models.logic_models import LeaderRanking, NoValidLeader, NormalizedListing

DEFAULT_TOP_N = 5


def resolve_leader(
        listings: Sequence[NormalizedListing],
        top_n: int = DEFAULT_TOP_N
) -> Union[LeaderRanking, NoValidLeader]:
    """
    Ranks listings by ascending price and picks the cheapest one as leader.

    Listings without a price are left out. Equal prices keep their input order
    (sorted() is stable). Returns NoValidLeader when no listing has a price.
    """
    priced: List[NormalizedListing] = [listing for listing in listings if listing.price is not None]
    if not priced:
        return NoValidLeader()

    ranked = sorted(priced, key=lambda listing: listing.price)
    return LeaderRanking(leader=ranked[0], ranked=ranked, top=ranked[:max(top_n, 0)])
