"""Place rating aggregates.

A place's ``avgRating``/``ratingCount`` are a pure function of the latest
rating each user left there. They are always recomputed from the place's
rating copies, never adjusted incrementally, so recomputing is idempotent
and also repairs an average left stale by a failed earlier write.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from . import schema
from .models import PlaceAggregate
from .projector import read_number, read_str
from .repository import Repository

logger = logging.getLogger(__name__)

_ONE_DECIMAL = Decimal("0.1")


def round_half_away(value: Decimal) -> float:
    """Round to one decimal place, halves away from zero."""
    return float(value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def latest_stars_by_user(items: Iterable[Mapping[str, Any]]) -> dict[str, int | float]:
    """
    Reduce rating copies to each user's most recent stars.

    ``items`` must be ordered newest first; the first item seen per user
    wins. Items without a user id are ignored.
    """
    latest: dict[str, int | float] = {}
    for item in items:
        user_id = read_str(item, "userId")
        if user_id and user_id not in latest:
            latest[user_id] = read_number(item, "stars")
    return latest


def compute_place_aggregate(items: Iterable[Mapping[str, Any]]) -> PlaceAggregate:
    """
    Average of each user's latest stars.

    Example: A rates 5 then 2, B rates 3 -> (2 + 3) / 2 = 2.5 over 2 users.
    """
    latest = latest_stars_by_user(items)
    if not latest:
        return PlaceAggregate(avg_rating=0, rating_count=0)

    total = sum((Decimal(str(stars)) for stars in latest.values()), Decimal(0))
    return PlaceAggregate(
        avg_rating=round_half_away(total / len(latest)),
        rating_count=len(latest),
    )


class AggregateRecomputer:
    """Recomputes and stores place aggregates from the current rating set."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def compute(self, place_id: str) -> PlaceAggregate:
        """Read every rating copy at the place (newest first) and reduce it."""
        items = await self.repository.query_all(
            schema.pk_place(place_id),
            sk_prefix=schema.SK_RATING,
            descending=True,
        )
        return compute_place_aggregate(items)

    async def recompute_place(
        self,
        place_id: str,
        place_info: Mapping[str, Any] | None = None,
    ) -> PlaceAggregate:
        """
        Recompute a place's aggregate and write it to Place META.

        Args:
            place_id: Place to recompute
            place_info: Extra Place META attributes to set in the same write
                (name, lat, lng, address on rating creation)
        """
        aggregate = await self.compute(place_id)
        values: dict[str, Any] = dict(place_info or {})
        values.update(
            {
                "avgRating": aggregate.avg_rating,
                "ratingCount": aggregate.rating_count,
                "placeId": place_id,
                "entityType": schema.ENTITY_PLACE,
            }
        )
        await self.repository.update_item(
            schema.key(schema.pk_place(place_id), schema.sk_meta()),
            set_values=values,
        )
        logger.debug(
            "Recomputed place %s: avg=%s count=%s",
            place_id,
            aggregate.avg_rating,
            aggregate.rating_count,
        )
        return aggregate
