"""Tests for place aggregate computation and recompute."""

from decimal import Decimal

import pytest

from brewlog import schema
from brewlog.aggregates import (
    AggregateRecomputer,
    compute_place_aggregate,
    latest_stars_by_user,
    round_half_away,
)
from brewlog.models import PlaceAggregate
from tests.fixtures.ratings import new_rating


class TestComputePlaceAggregate:
    def test_latest_rating_per_user_wins(self):
        """A rates 5 then 2, B rates 3: (2 + 3) / 2 = 2.5 over 2 users."""
        newest_first = [
            {"userId": "A", "stars": 2},
            {"userId": "B", "stars": 3},
            {"userId": "A", "stars": 5},
        ]
        assert compute_place_aggregate(newest_first) == PlaceAggregate(2.5, 2)

    def test_empty_place(self):
        assert compute_place_aggregate([]) == PlaceAggregate(0, 0)

    def test_items_without_user_ignored(self):
        assert latest_stars_by_user([{"stars": 5}, {"userId": "A", "stars": 4}]) == {"A": 4}

    def test_rounds_to_one_decimal(self):
        items = [{"userId": u, "stars": s} for u, s in [("A", 5), ("B", 4), ("C", 4)]]
        assert compute_place_aggregate(items).avg_rating == 4.3

    @pytest.mark.parametrize(
        "value,expected",
        [("4.25", 4.3), ("4.35", 4.4), ("4.05", 4.1), ("4.04", 4.0), ("3.75", 3.8)],
    )
    def test_half_rounds_up(self, value, expected):
        assert round_half_away(Decimal(value)) == expected


class TestAggregateRecomputer:
    async def test_two_users_rate_same_place(self, writer, reader):
        """Stars 5 and 3 from two users give avgRating 4 over 2."""
        await writer.create_rating("u1", new_rating(stars=5))
        await writer.create_rating("u2", new_rating(stars=3))

        place = await reader.place("place-1")
        assert place["avgRating"] == 4
        assert place["ratingCount"] == 2

    async def test_rerating_counts_latest_only(self, writer, reader):
        await writer.create_rating("A", new_rating(stars=5))
        await writer.create_rating("B", new_rating(stars=3))
        await writer.create_rating("A", new_rating(stars=2))

        place = await reader.place("place-1")
        assert place["avgRating"] == 2.5
        assert place["ratingCount"] == 2

    async def test_recompute_is_idempotent(self, repo, writer):
        await writer.create_rating("u1", new_rating(stars=4.5))
        await writer.create_rating("u2", new_rating(stars=2))
        recomputer = AggregateRecomputer(repo)

        first = await recomputer.recompute_place("place-1")
        second = await recomputer.recompute_place("place-1")

        assert first == second == PlaceAggregate(3.3, 2)

    async def test_recompute_repairs_stale_aggregate(self, repo, writer):
        await writer.create_rating("u1", new_rating(stars=4))
        place_key = schema.key(schema.pk_place("place-1"), schema.sk_meta())
        await repo.update_item(place_key, set_values={"avgRating": 1, "ratingCount": 9})

        await AggregateRecomputer(repo).recompute_place("place-1")

        item = await repo.get_item(place_key)
        assert item["avgRating"] == 4
        assert item["ratingCount"] == 1

    async def test_recompute_keeps_place_info(self, repo, writer):
        await writer.create_rating("u1", new_rating(stars=4))
        await AggregateRecomputer(repo).recompute_place("place-1")

        item = await repo.get_item(schema.key(schema.pk_place("place-1"), schema.sk_meta()))
        assert item["name"] == "Blue Door Coffee"
        assert item["entityType"] == "Place"
