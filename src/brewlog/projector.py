"""Read-side projections of stored items.

Items read back from the store have no static shape. Everything that leaves
this module has its storage-only attributes stripped, and every field the
code itself relies on is read through ``read_number``/``read_str``, which
treat missing or mistyped values as zero/absent instead of raising.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from . import schema
from .exceptions import PlaceNotFoundError, RatingNotFoundError
from .pagination import decode_cursor, encode_cursor, parse_limit, ratings_before
from .repository import Repository

logger = logging.getLogger(__name__)

PhotoUrlFn = Callable[[str], str]


def read_number(item: Mapping[str, Any], name: str) -> int | float:
    """Numeric attribute, or 0 when missing or not a number."""
    value = item.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def read_str(item: Mapping[str, Any], name: str) -> str | None:
    """String attribute, or None when missing or not a string."""
    value = item.get(name)
    return value if isinstance(value, str) else None


def strip_item(item: Mapping[str, Any], secret: bool = False) -> dict[str, Any]:
    """Drop PK/SK/entityType, and credentials too when ``secret`` is set."""
    hidden = schema.STORAGE_ATTRIBUTES + (schema.SECRET_ATTRIBUTES if secret else ())
    return {k: v for k, v in item.items() if k not in hidden}


class ReadProjector:
    """
    Assembles read-facing shapes for every query pattern.

    Args:
        repository: Store gateway
        photo_url: Maps a ``photoKey`` to a retrieval URL; when None,
            no ``photoUrl`` is attached
    """

    def __init__(self, repository: Repository, photo_url: PhotoUrlFn | None = None) -> None:
        self.repository = repository
        self._photo_url = photo_url

    # -------------------------------------------------------------------------
    # Item shaping
    # -------------------------------------------------------------------------

    def present(self, item: Mapping[str, Any]) -> dict[str, Any]:
        """Strip storage attributes and attach ``photoUrl`` when a photo exists."""
        result = strip_item(item)
        photo_key = read_str(result, "photoKey")
        if photo_key and self._photo_url is not None:
            result["photoUrl"] = self._photo_url(photo_key)
        return result

    async def liked_rating_ids(self, rating_ids: Iterable[str], viewer_id: str | None) -> list[str]:
        """Which of ``rating_ids`` the viewer has liked, by Like item existence."""
        ids = list(dict.fromkeys(r for r in rating_ids if r))
        if not viewer_id or not ids:
            return []

        found = await self.repository.batch_get(
            [schema.key(schema.pk_rating(r), schema.sk_like(viewer_id)) for r in ids],
            attributes=["PK"],
        )
        liked = {schema.parse_rating_pk(item["PK"]) for item in found}
        # Keep the caller's order
        return [r for r in ids if r in liked]

    # -------------------------------------------------------------------------
    # Rating lists
    # -------------------------------------------------------------------------

    async def _rating_page(
        self,
        pk: str,
        limit: Any,
        cursor: str | None,
        viewer_id: str | None,
    ) -> dict[str, Any]:
        page = await self.repository.query(
            pk,
            sk_prefix=schema.SK_RATING,
            descending=True,
            limit=parse_limit(limit),
            start_key=decode_cursor(cursor),
        )
        ratings = [self.present(item) for item in page.items]
        liked = await self.liked_rating_ids(
            (read_str(r, "ratingId") or "" for r in ratings), viewer_id
        )
        return {
            "ratings": ratings,
            "likedRatingIds": liked,
            "nextCursor": encode_cursor(page.last_evaluated_key),
        }

    async def user_ratings(
        self,
        user_id: str,
        limit: Any = None,
        cursor: str | None = None,
        viewer_id: str | None = None,
    ) -> dict[str, Any]:
        """A user's own ratings, newest first, paged by opaque cursor."""
        return await self._rating_page(schema.pk_user(user_id), limit, cursor, viewer_id)

    async def place_ratings(
        self,
        place_id: str,
        limit: Any = None,
        cursor: str | None = None,
        viewer_id: str | None = None,
    ) -> dict[str, Any]:
        """All ratings at a place, newest first, paged by opaque cursor."""
        return await self._rating_page(schema.pk_place(place_id), limit, cursor, viewer_id)

    # -------------------------------------------------------------------------
    # Rating detail
    # -------------------------------------------------------------------------

    async def rating_detail(self, rating_id: str, viewer_id: str | None = None) -> dict[str, Any]:
        """
        A rating with its likes and comments, from one partition query.

        Raises:
            RatingNotFoundError: If the rating has no META item
        """
        items = await self.repository.query_all(schema.pk_rating(rating_id))

        meta: dict[str, Any] | None = None
        likes: list[dict[str, Any]] = []
        comments: list[dict[str, Any]] = []
        for item in items:
            sk = read_str(item, "SK") or ""
            if sk == schema.SK_META:
                meta = item
            elif sk.startswith(schema.SK_LIKE):
                likes.append(
                    {
                        "userId": read_str(item, "userId"),
                        "username": read_str(item, "username"),
                        "displayName": read_str(item, "displayName"),
                    }
                )
            elif sk.startswith(schema.SK_COMMENT):
                comments.append(
                    {
                        "commentId": read_str(item, "commentId"),
                        "userId": read_str(item, "userId"),
                        "username": read_str(item, "username"),
                        "displayName": read_str(item, "displayName"),
                        "text": read_str(item, "text"),
                        "createdAt": read_str(item, "createdAt"),
                    }
                )

        if meta is None:
            raise RatingNotFoundError(rating_id)

        is_liked = bool(viewer_id) and any(like["userId"] == viewer_id for like in likes)
        return {
            "rating": self.present(meta),
            "likes": likes,
            "comments": comments,
            "isLikedByMe": is_liked,
        }

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------

    async def feed(
        self,
        user_id: str,
        limit: Any = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        """
        Ratings by the caller and everyone the caller follows, newest first.

        Each author's partition is queried concurrently for ``limit + 1``
        items older than the timestamp cursor; the merged list is truncated
        to ``limit`` and a cursor is returned only if more items existed.
        """
        page_size = parse_limit(limit)
        sk_range = ratings_before(cursor)

        friends, profile = await asyncio.gather(
            self.repository.query_all(schema.pk_user(user_id), sk_prefix=schema.SK_FRIEND),
            self.repository.get_item(
                schema.key(schema.pk_user(user_id), schema.sk_profile()),
                attributes=["username", "displayName"],
            ),
        )

        authors: dict[str, tuple[str | None, str | None]] = {
            user_id: (
                read_str(profile or {}, "username"),
                read_str(profile or {}, "displayName"),
            )
        }
        for friend in friends:
            friend_id = read_str(friend, "friendUserId")
            if friend_id and friend_id not in authors:
                authors[friend_id] = (
                    read_str(friend, "friendUsername"),
                    read_str(friend, "friendDisplayName"),
                )

        async def author_ratings(author_id: str) -> list[dict[str, Any]]:
            username, display_name = authors[author_id]
            result = await self.repository.query(
                schema.pk_user(author_id),
                sk_prefix=None if sk_range else schema.SK_RATING,
                sk_between=sk_range,
                descending=True,
                limit=page_size + 1,
            )
            ratings = []
            for item in result.items:
                rating = self.present(item)
                rating["username"] = username
                rating["displayName"] = display_name
                ratings.append(rating)
            return ratings

        pages = await asyncio.gather(*(author_ratings(a) for a in authors))
        merged = [rating for page in pages for rating in page]
        merged.sort(
            key=lambda r: (read_str(r, "createdAt") or "", read_str(r, "ratingId") or ""),
            reverse=True,
        )

        page = merged[:page_size]
        next_cursor = read_str(page[-1], "createdAt") if len(merged) > page_size else None
        liked = await self.liked_rating_ids(
            (read_str(r, "ratingId") or "" for r in page), user_id
        )
        return {"ratings": page, "likedRatingIds": liked, "nextCursor": next_cursor}

    # -------------------------------------------------------------------------
    # Places, social graph, stats
    # -------------------------------------------------------------------------

    async def place(self, place_id: str) -> dict[str, Any]:
        """
        Place META with its aggregate rating.

        Raises:
            PlaceNotFoundError: If the place has never been rated
        """
        item = await self.repository.get_item(
            schema.key(schema.pk_place(place_id), schema.sk_meta())
        )
        if item is None:
            raise PlaceNotFoundError(place_id)
        return strip_item(item)

    async def user_places(self, user_id: str) -> dict[str, Any]:
        items = await self.repository.query_all(schema.pk_user(user_id), sk_prefix=schema.SK_PLACE)
        return {"places": [strip_item(item) for item in items]}

    async def friends(self, user_id: str) -> dict[str, Any]:
        items = await self.repository.query_all(schema.pk_user(user_id), sk_prefix=schema.SK_FRIEND)
        return {"friends": [strip_item(item) for item in items]}

    async def followers(self, user_id: str) -> dict[str, Any]:
        items = await self.repository.query_all(
            schema.pk_user(user_id), sk_prefix=schema.SK_FOLLOWER
        )
        return {"followers": [strip_item(item) for item in items]}

    async def caffeine_stats(self, user_id: str, day: str | None = None) -> dict[str, Any]:
        """
        Caffeine consumed today (UTC) and in total.

        ``todayMg`` sums the owner copies created on ``day``; ``totalMg`` is
        the profile's running total.
        """
        day = day or datetime.now(UTC).strftime("%Y-%m-%d")
        start = f"{schema.SK_RATING}{day}"
        today, profile = await asyncio.gather(
            self.repository.query(
                schema.pk_user(user_id),
                sk_between=(start, start + schema.SK_HIGH_SENTINEL),
                attributes=["caffeineMg"],
            ),
            self.repository.get_item(
                schema.key(schema.pk_user(user_id), schema.sk_profile()),
                attributes=["totalCaffeineMg"],
            ),
        )
        today_mg = sum(read_number(item, "caffeineMg") for item in today.items)
        return {"todayMg": today_mg, "totalMg": read_number(profile or {}, "totalCaffeineMg")}
