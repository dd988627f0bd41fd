"""Tests for request validation models."""

import re

import pytest

from brewlog.exceptions import ValidationError
from brewlog.models import (
    Credentials,
    FriendRequest,
    NewComment,
    NewRating,
    NewUser,
    RatingChanges,
    UploadRequest,
    generate_id,
    utc_timestamp,
)
from tests.fixtures.ratings import rating_body


class TestTimestamps:
    def test_fixed_width_format(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())

    def test_ids_are_unique(self):
        assert len({generate_id() for _ in range(100)}) == 100


class TestNewRating:
    def test_valid(self):
        rating = NewRating.from_dict(rating_body(description="nice", photoKey="uploads/u/1.jpg"))
        assert rating.place_id == "place-1"
        assert rating.stars == 4.5
        assert rating.description == "nice"
        assert rating.photo_key == "uploads/u/1.jpg"
        assert rating.caffeine_mg == 130

    def test_optional_fields(self):
        rating = NewRating.from_dict(rating_body(address=None, caffeineMg=None))
        assert rating.address is None
        assert rating.caffeine_mg is None
        assert rating.description is None

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"stars": 0.5}, "stars"),
            ({"stars": 5.5}, "stars"),
            ({"stars": 4.2}, "stars"),
            ({"stars": "4"}, "stars"),
            ({"stars": True}, "stars"),
            ({"placeName": ""}, "placeName"),
            ({"placeName": "x" * 201}, "placeName"),
            ({"drinkName": "x" * 101}, "drinkName"),
            ({"description": "x" * 501}, "description"),
            ({"address": "x" * 301}, "address"),
            ({"caffeineMg": -1}, "caffeineMg"),
            ({"caffeineMg": 1001}, "caffeineMg"),
            ({"lat": "north"}, "lat"),
            ({"caffeineMg": float("nan")}, "caffeineMg"),
            ({"stars": float("nan")}, "stars"),
            ({"lat": float("inf")}, "lat"),
            ({"lng": float("-inf")}, "lng"),
        ],
    )
    def test_invalid(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            NewRating.from_dict(rating_body(**overrides))
        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400

    def test_missing_required(self):
        body = rating_body()
        del body["drinkName"]
        with pytest.raises(ValidationError, match="drinkName is required"):
            NewRating.from_dict(body)

    def test_body_must_be_object(self):
        with pytest.raises(ValidationError, match="JSON object"):
            NewRating.from_dict(["not", "an", "object"])


class TestRatingChanges:
    def test_only_present_fields(self):
        changes = RatingChanges.from_dict({"stars": 3})
        assert changes.values == {"stars": 3}
        assert changes.provided("stars")
        assert not changes.provided("description")

    def test_explicit_null_kept_for_nullable_fields(self):
        changes = RatingChanges.from_dict({"description": None, "photoKey": None, "address": None})
        assert changes.values == {"description": None, "photoKey": None, "address": None}

    @pytest.mark.parametrize("field", ["stars", "drinkName", "placeName", "caffeineMg", "lat"])
    def test_null_rejected_for_required_fields(self, field):
        with pytest.raises(ValidationError) as exc_info:
            RatingChanges.from_dict({field: None})
        assert exc_info.value.field == field

    def test_unknown_fields_ignored(self):
        assert RatingChanges.from_dict({"userId": "someone-else"}).values == {}

    def test_half_star_steps(self):
        with pytest.raises(ValidationError):
            RatingChanges.from_dict({"stars": 3.3})

    @pytest.mark.parametrize("field", ["stars", "caffeineMg", "lat", "lng"])
    def test_non_finite_numbers_rejected(self, field):
        for value in (float("nan"), float("inf")):
            with pytest.raises(ValidationError, match="must be a number") as exc_info:
                RatingChanges.from_dict({field: value})
            assert exc_info.value.field == field


class TestAccountInputs:
    def test_new_user(self):
        body = {"username": "Bean_Fan", "displayName": "B", "password": "secret1"}
        user = NewUser.from_dict(body)
        assert user.username == "Bean_Fan"

    @pytest.mark.parametrize(
        "body",
        [
            {"username": "ab", "displayName": "B", "password": "secret1"},
            {"username": "has space", "displayName": "B", "password": "secret1"},
            {"username": "x" * 31, "displayName": "B", "password": "secret1"},
            {"username": "bean", "displayName": "", "password": "secret1"},
            {"username": "bean", "displayName": "B", "password": "short"},
        ],
    )
    def test_new_user_invalid(self, body):
        with pytest.raises(ValidationError):
            NewUser.from_dict(body)

    def test_credentials(self):
        assert Credentials.from_dict({"username": "a", "password": "b"}) == Credentials("a", "b")

    def test_comment_length(self):
        assert NewComment.from_dict({"text": "ok"}).text == "ok"
        with pytest.raises(ValidationError):
            NewComment.from_dict({"text": ""})
        with pytest.raises(ValidationError):
            NewComment.from_dict({"text": "x" * 501})

    def test_friend_request(self):
        assert FriendRequest.from_dict({"friendUsername": "bob"}).friend_username == "bob"
        with pytest.raises(ValidationError):
            FriendRequest.from_dict({})


class TestUploadRequest:
    def test_extension(self):
        request = UploadRequest.from_dict({"fileName": "cup.png", "contentType": "image/png"})
        assert request.extension == "png"

    def test_default_extension(self):
        request = UploadRequest.from_dict({"fileName": "cup", "contentType": "image/jpeg"})
        assert request.extension == "jpg"

    def test_images_only(self):
        with pytest.raises(ValidationError, match="image"):
            UploadRequest.from_dict({"fileName": "a.pdf", "contentType": "application/pdf"})
