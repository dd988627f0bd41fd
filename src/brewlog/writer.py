"""Fan-out of domain mutations onto denormalized items.

Each mutation has a primary write and, usually, secondary writes:

- the primary write decides whether the mutation happened at all. When it
  spans several items that must appear together it is one transaction;
- secondary writes keep other projections (counters, aggregates, visit
  summaries) in step. They are issued concurrently where nothing orders
  them. Those that only refresh aggregates are best-effort: a failure is
  logged and leaves the aggregate stale until its next recompute, without
  failing the mutation.

No locks or version checks are used. Counters change through store-side
``ADD`` deltas so concurrent mutations compose.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from . import schema
from .aggregates import AggregateRecomputer
from .caffeine import resolve_caffeine_mg
from .exceptions import (
    NotRatingOwnerError,
    RatingNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from .models import FriendRequest, NewComment, NewRating, RatingChanges, generate_id, utc_timestamp
from .projector import read_number, read_str
from .repository import Repository
from .updates import (
    OWNER_COPY_FIELDS,
    PLACE_COPY_FIELDS,
    PLACE_INFO_NAMES,
    PLACE_META_INFO_FIELDS,
    RATING_META_FIELDS,
    USER_PLACE_INFO_FIELDS,
    build_partial_update,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingRef:
    """Everything needed to address the three copies of one rating."""

    rating_id: str
    user_id: str
    place_id: str
    created_at: str

    @classmethod
    def from_meta(cls, rating_id: str, meta: Mapping[str, Any]) -> "RatingRef":
        return cls(
            rating_id=rating_id,
            user_id=read_str(meta, "userId") or "",
            place_id=read_str(meta, "placeId") or "",
            created_at=read_str(meta, "createdAt") or "",
        )

    def copy_keys(self) -> list[dict[str, str]]:
        """Keys of META, the owner copy and the place copy."""
        return schema.rating_copy_keys(self.user_id, self.place_id, self.created_at, self.rating_id)


class ProjectionWriter:
    """
    Translates one domain mutation into its full set of item writes.

    Args:
        repository: Store gateway
        clock: Returns the current fixed-width ISO timestamp
        id_factory: Returns a new unique identifier
    """

    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], str] = utc_timestamp,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self.repository = repository
        self.aggregates = AggregateRecomputer(repository)
        self._clock = clock
        self._id_factory = id_factory

    # -------------------------------------------------------------------------
    # Shared reads
    # -------------------------------------------------------------------------

    async def _profile(self, user_id: str) -> dict[str, Any]:
        """A user's profile, or an empty dict for an unknown user."""
        item = await self.repository.get_item(
            schema.key(schema.pk_user(user_id), schema.sk_profile()),
            attributes=["username", "displayName"],
        )
        return item or {}

    async def _rating_meta(self, rating_id: str) -> dict[str, Any]:
        meta = await self.repository.get_item(
            schema.key(schema.pk_rating(rating_id), schema.sk_meta())
        )
        if meta is None:
            raise RatingNotFoundError(rating_id)
        return meta

    async def _adjust_counter(self, ref: RatingRef, attribute: str, delta: int) -> None:
        """Apply one delta to a counter on all three rating copies concurrently."""
        await asyncio.gather(
            *(self.repository.add_delta(k, attribute, delta) for k in ref.copy_keys())
        )

    async def _best_effort(self, label: str, steps: Mapping[str, Awaitable[Any]]) -> list[str]:
        """
        Run secondary writes concurrently, logging instead of raising on failure.

        Returns:
            Names of the steps that failed
        """
        names = list(steps)
        results = await asyncio.gather(*steps.values(), return_exceptions=True)
        failed = []
        for name, result in zip(names, results, strict=True):
            if isinstance(result, Exception):
                failed.append(name)
                logger.warning(
                    "%s: secondary write %r failed, projection left stale",
                    label,
                    name,
                    exc_info=result,
                )
        return failed

    # -------------------------------------------------------------------------
    # Ratings
    # -------------------------------------------------------------------------

    async def create_rating(self, user_id: str, rating: NewRating) -> dict[str, Any]:
        """
        Create a rating.

        The owner copy, place copy and META are written in one transaction.
        Afterwards the visit summary, the place aggregate and the author's
        caffeine total are refreshed best-effort.

        Returns:
            ``{"ratingId", "createdAt"}``
        """
        rating_id = self._id_factory()
        created_at = self._clock()
        profile = await self._profile(user_id)
        username = read_str(profile, "username") or "unknown"
        display_name = read_str(profile, "displayName") or username

        caffeine_mg = rating.caffeine_mg
        if caffeine_mg is None:
            caffeine_mg = resolve_caffeine_mg(rating.drink_name)

        shared = {
            "ratingId": rating_id,
            "userId": user_id,
            "placeId": rating.place_id,
            "stars": rating.stars,
            "drinkName": rating.drink_name,
            "description": rating.description,
            "photoKey": rating.photo_key,
            "caffeineMg": caffeine_mg,
            "address": rating.address,
            "createdAt": created_at,
            "likeCount": 0,
            "commentCount": 0,
        }
        place_fields = {"placeName": rating.place_name, "lat": rating.lat, "lng": rating.lng}
        author = {"username": username, "displayName": display_name}
        rating_sk = schema.sk_rating(created_at, rating_id)

        await self.repository.transact_put(
            [
                {
                    "PK": schema.pk_user(user_id),
                    "SK": rating_sk,
                    **shared,
                    **place_fields,
                    "entityType": schema.ENTITY_RATING,
                },
                {
                    "PK": schema.pk_place(rating.place_id),
                    "SK": rating_sk,
                    **shared,
                    **author,
                    "entityType": schema.ENTITY_PLACE_RATING,
                },
                {
                    "PK": schema.pk_rating(rating_id),
                    "SK": schema.sk_meta(),
                    **shared,
                    **place_fields,
                    **author,
                    "entityType": schema.ENTITY_RATING_META,
                },
            ]
        )
        logger.info("Created rating %s by %s at %s", rating_id, user_id, rating.place_id)

        address = rating.address or ""
        steps: dict[str, Awaitable[Any]] = {
            "user_place": self.repository.update_item(
                schema.key(schema.pk_user(user_id), schema.sk_user_place(rating.place_id)),
                set_values={
                    **place_fields,
                    "placeId": rating.place_id,
                    "address": address,
                    "lastVisited": created_at,
                    "entityType": schema.ENTITY_USER_PLACE,
                },
                add={"visitCount": 1},
            ),
            "place_aggregate": self.aggregates.recompute_place(
                rating.place_id,
                place_info={
                    "name": rating.place_name,
                    "lat": rating.lat,
                    "lng": rating.lng,
                    "address": address,
                },
            ),
        }
        if caffeine_mg:
            steps["caffeine_total"] = self.repository.add_delta(
                schema.key(schema.pk_user(user_id), schema.sk_profile()),
                "totalCaffeineMg",
                caffeine_mg,
            )
        await self._best_effort(f"create_rating {rating_id}", steps)

        return {"ratingId": rating_id, "createdAt": created_at}

    async def edit_rating(
        self, user_id: str, rating_id: str, changes: RatingChanges
    ) -> dict[str, Any]:
        """
        Edit a rating the caller owns.

        META, owner copy and place copy get concurrent partial updates built
        from the same field table. Then, best-effort: the place aggregate is
        recomputed if stars changed, the caffeine total is shifted by the
        difference if caffeineMg changed, and place info sent with the edit
        is copied to Place META and the visit summary.

        Raises:
            RatingNotFoundError: If the rating does not exist
            NotRatingOwnerError: If the caller did not create the rating
        """
        meta = await self._rating_meta(rating_id)
        ref = RatingRef.from_meta(rating_id, meta)
        if ref.user_id != user_id:
            raise NotRatingOwnerError(rating_id, user_id)

        updated_at = self._clock()
        stamp = {"updatedAt": updated_at}
        values = changes.values
        meta_key, owner_key, place_key = ref.copy_keys()

        updates = [
            (meta_key, build_partial_update(values, RATING_META_FIELDS, stamp)),
            (owner_key, build_partial_update(values, OWNER_COPY_FIELDS, stamp)),
            (place_key, build_partial_update(values, PLACE_COPY_FIELDS, stamp)),
        ]
        await asyncio.gather(
            *(
                self.repository.update_item(k, set_values=u.set_values, remove=u.remove)
                for k, u in updates
            )
        )

        steps: dict[str, Awaitable[Any]] = {}

        old_stars = meta.get("stars")
        if changes.provided("stars") and changes.get("stars") != old_stars:
            steps["place_aggregate"] = self.aggregates.recompute_place(ref.place_id)

        old_caffeine = read_number(meta, "caffeineMg")
        if changes.provided("caffeineMg") and changes.get("caffeineMg") != old_caffeine:
            steps["caffeine_total"] = self.repository.add_delta(
                schema.key(schema.pk_user(user_id), schema.sk_profile()),
                "totalCaffeineMg",
                changes.get("caffeineMg") - old_caffeine,
            )

        if PLACE_INFO_NAMES & values.keys():
            place_meta = build_partial_update(values, PLACE_META_INFO_FIELDS)
            user_place = build_partial_update(values, USER_PLACE_INFO_FIELDS)
            steps["place_info"] = self.repository.update_item(
                schema.key(schema.pk_place(ref.place_id), schema.sk_meta()),
                set_values=place_meta.set_values,
            )
            steps["user_place_info"] = self.repository.update_item(
                schema.key(schema.pk_user(user_id), schema.sk_user_place(ref.place_id)),
                set_values=user_place.set_values,
            )

        await self._best_effort(f"edit_rating {rating_id}", steps)
        logger.info("Edited rating %s fields=%s", rating_id, sorted(values))
        return {"ratingId": rating_id, "updatedAt": updated_at}

    # -------------------------------------------------------------------------
    # Likes and comments
    # -------------------------------------------------------------------------

    async def toggle_like(self, user_id: str, rating_id: str) -> dict[str, Any]:
        """
        Like the rating if the caller has not, otherwise unlike it.

        The Like item is written or deleted first, then ``likeCount`` moves
        by one on all three rating copies. The returned count is derived
        from META as read before the toggle and floored at 0; the stored
        counters are not floored.

        Raises:
            RatingNotFoundError: If the rating does not exist
        """
        meta = await self._rating_meta(rating_id)
        ref = RatingRef.from_meta(rating_id, meta)
        like_key = schema.key(schema.pk_rating(rating_id), schema.sk_like(user_id))
        current = int(read_number(meta, "likeCount"))

        existing = await self.repository.get_item(like_key, attributes=["PK"])
        if existing is not None:
            await self.repository.delete_item(like_key)
            await self._adjust_counter(ref, "likeCount", -1)
            return {"liked": False, "likeCount": max(0, current - 1)}

        profile = await self._profile(user_id)
        username = read_str(profile, "username") or ""
        await self.repository.put_item(
            {
                **like_key,
                "userId": user_id,
                "username": username,
                "displayName": read_str(profile, "displayName") or username,
                "createdAt": self._clock(),
                "entityType": schema.ENTITY_LIKE,
            }
        )
        await self._adjust_counter(ref, "likeCount", 1)
        return {"liked": True, "likeCount": current + 1}

    async def create_comment(
        self, user_id: str, rating_id: str, comment: NewComment
    ) -> dict[str, Any]:
        """
        Comment on a rating and bump ``commentCount`` on its three copies.

        Raises:
            RatingNotFoundError: If the rating does not exist
        """
        meta = await self._rating_meta(rating_id)
        ref = RatingRef.from_meta(rating_id, meta)
        profile = await self._profile(user_id)
        username = read_str(profile, "username") or ""

        comment_id = self._id_factory()
        created_at = self._clock()
        await self.repository.put_item(
            {
                "PK": schema.pk_rating(rating_id),
                "SK": schema.sk_comment(created_at, comment_id),
                "commentId": comment_id,
                "userId": user_id,
                "username": username,
                "displayName": read_str(profile, "displayName") or username,
                "text": comment.text,
                "createdAt": created_at,
                "entityType": schema.ENTITY_COMMENT,
            }
        )
        await self._adjust_counter(ref, "commentCount", 1)
        return {"commentId": comment_id, "createdAt": created_at}

    # -------------------------------------------------------------------------
    # Social graph
    # -------------------------------------------------------------------------

    async def add_friend(self, user_id: str, request: FriendRequest) -> dict[str, Any]:
        """
        Follow another user by username.

        Writes the Friend edge on the caller's partition, then the Follower
        edge on the target's. The two puts are not atomic: if the second
        fails, the caller follows the target without a matching Follower
        item.

        Raises:
            UserNotFoundError: If no user has that username
            ValidationError: If the caller tries to follow themselves
        """
        friend_username = request.friend_username.lower()
        index = await self.repository.get_item(
            schema.key(schema.pk_username(friend_username), schema.sk_username())
        )
        friend_user_id = read_str(index or {}, "userId")
        if not friend_user_id:
            raise UserNotFoundError(friend_username)
        if friend_user_id == user_id:
            raise ValidationError(
                "friendUsername", request.friend_username, "Cannot add yourself as a friend"
            )

        friend_profile, own_profile = await asyncio.gather(
            self._profile(friend_user_id), self._profile(user_id)
        )
        friend_display_name = read_str(friend_profile, "displayName") or friend_username
        own_username = read_str(own_profile, "username") or ""
        now = self._clock()

        await self.repository.put_item(
            {
                "PK": schema.pk_user(user_id),
                "SK": schema.sk_friend(friend_user_id),
                "friendUserId": friend_user_id,
                "friendUsername": friend_username,
                "friendDisplayName": friend_display_name,
                "addedAt": now,
                "entityType": schema.ENTITY_FRIEND,
            }
        )
        await self.repository.put_item(
            {
                "PK": schema.pk_user(friend_user_id),
                "SK": schema.sk_follower(user_id),
                "followerUserId": user_id,
                "followerUsername": own_username,
                "followerDisplayName": read_str(own_profile, "displayName") or own_username,
                "followedAt": now,
                "entityType": schema.ENTITY_FOLLOWER,
            }
        )
        logger.info("User %s now follows %s", user_id, friend_user_id)
        return {
            "friendUserId": friend_user_id,
            "friendUsername": friend_username,
            "friendDisplayName": friend_display_name,
        }
