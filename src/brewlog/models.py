"""Core models for brewlog."""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ulid import ULID

from .exceptions import ValidationError

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


def utc_timestamp() -> str:
    """
    Current UTC time as a fixed-width ISO-8601 string.

    Format is ``YYYY-MM-DDTHH:MM:SS.mmmZ``; lexicographic order equals
    chronological order, so it is safe as a sort key component.
    """
    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def generate_id() -> str:
    """Generate a unique identifier using ULID (monotonic, collision-free)."""
    return str(ULID())


# ---------------------------------------------------------------------------
# Field validation helpers
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _string(
    data: Mapping[str, Any],
    name: str,
    min_length: int = 0,
    max_length: int | None = None,
    required: bool = True,
) -> str | None:
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationError(name, value, f"{name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(name, value, f"{name} must be a string")
    if len(value) < min_length:
        raise ValidationError(
            name, value, f"{name} must contain at least {min_length} character(s)"
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            name, value, f"{name} must contain at most {max_length} character(s)"
        )
    return value


def _number(
    data: Mapping[str, Any],
    name: str,
    minimum: float | None = None,
    maximum: float | None = None,
    required: bool = True,
) -> float | int | None:
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationError(name, value, f"{name} is required")
        return None
    if not _is_number(value):
        raise ValidationError(name, value, f"{name} must be a number")
    if minimum is not None and value < minimum:
        raise ValidationError(name, value, f"{name} must be greater than or equal to {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(name, value, f"{name} must be less than or equal to {maximum}")
    return value


def _stars(value: float | int | None) -> None:
    if value is not None and not float(value * 2).is_integer():
        raise ValidationError("stars", value, "stars must be a multiple of 0.5")


def _require_object(body: Any) -> Mapping[str, Any]:
    if not isinstance(body, Mapping):
        raise ValidationError("body", body, "Request body must be a JSON object")
    return body


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewRating:
    """
    A validated rating submission.

    Attributes:
        place_id: External place identifier
        place_name: Display name of the place (1..200)
        stars: 1..5 in half-star steps
        drink_name: What was ordered (1..100)
        lat: Place latitude
        lng: Place longitude
        description: Optional free text (<=500)
        photo_key: Optional object-storage key of an uploaded photo
        address: Optional place address (<=300)
        caffeine_mg: Optional caffeine estimate (0..1000); resolved from
            drink_name when omitted
    """

    place_id: str
    place_name: str
    stars: float
    drink_name: str
    lat: float
    lng: float
    description: str | None = None
    photo_key: str | None = None
    address: str | None = None
    caffeine_mg: int | float | None = None

    @classmethod
    def from_dict(cls, body: Any) -> "NewRating":
        data = _require_object(body)
        return cls(
            place_id=_string(data, "placeId", min_length=1),  # type: ignore[arg-type]
            place_name=_string(data, "placeName", 1, 200),  # type: ignore[arg-type]
            stars=_number(data, "stars", 1, 5),  # type: ignore[arg-type]
            drink_name=_string(data, "drinkName", 1, 100),  # type: ignore[arg-type]
            description=_string(data, "description", max_length=500, required=False),
            photo_key=_string(data, "photoKey", required=False),
            lat=_number(data, "lat"),  # type: ignore[arg-type]
            lng=_number(data, "lng"),  # type: ignore[arg-type]
            address=_string(data, "address", max_length=300, required=False),
            caffeine_mg=_number(data, "caffeineMg", 0, 1000, required=False),
        )

    def __post_init__(self) -> None:
        _stars(self.stars)


# Edit fields: (name, minimum, maximum) for numbers, (name, min_len, max_len) for strings
_EDIT_NUMBERS: tuple[tuple[str, float | None, float | None], ...] = (
    ("stars", 1, 5),
    ("caffeineMg", 0, 1000),
    ("lat", None, None),
    ("lng", None, None),
)
_EDIT_STRINGS: tuple[tuple[str, int, int | None], ...] = (
    ("drinkName", 1, 100),
    ("placeName", 1, 200),
    ("description", 0, 500),
    ("photoKey", 0, None),
    ("address", 0, 300),
)
NULLABLE_EDIT_FIELDS = frozenset({"description", "photoKey", "address"})


@dataclass(frozen=True)
class RatingChanges:
    """
    A validated partial edit of a rating.

    ``values`` holds only the fields present in the request body. A nullable
    field explicitly sent as null is present with value ``None``; a field
    absent from the body is absent from ``values``.
    """

    values: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, body: Any) -> "RatingChanges":
        data = _require_object(body)
        values: dict[str, Any] = {}
        for name, minimum, maximum in _EDIT_NUMBERS:
            if name in data:
                if data[name] is None:
                    raise ValidationError(name, None, f"{name} must be a number")
                values[name] = _number(data, name, minimum, maximum)
        for name, min_length, max_length in _EDIT_STRINGS:
            if name in data:
                if data[name] is None:
                    if name not in NULLABLE_EDIT_FIELDS:
                        raise ValidationError(name, None, f"{name} must be a string")
                    values[name] = None
                else:
                    values[name] = _string(data, name, min_length, max_length)
        _stars(values.get("stars"))
        return cls(values=values)

    def provided(self, name: str) -> bool:
        return name in self.values

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


@dataclass(frozen=True)
class NewUser:
    """A validated account registration."""

    username: str
    display_name: str
    password: str

    @classmethod
    def from_dict(cls, body: Any) -> "NewUser":
        data = _require_object(body)
        username = _string(data, "username", 3, 30)
        if not USERNAME_PATTERN.match(username or ""):
            raise ValidationError(
                "username", username, "username may only contain letters, digits and underscores"
            )
        return cls(
            username=username,  # type: ignore[arg-type]
            display_name=_string(data, "displayName", 1, 50),  # type: ignore[arg-type]
            password=_string(data, "password", 6, 100),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    @classmethod
    def from_dict(cls, body: Any) -> "Credentials":
        data = _require_object(body)
        return cls(
            username=_string(data, "username", min_length=1),  # type: ignore[arg-type]
            password=_string(data, "password", min_length=1),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class NewComment:
    text: str

    @classmethod
    def from_dict(cls, body: Any) -> "NewComment":
        data = _require_object(body)
        return cls(text=_string(data, "text", 1, 500))  # type: ignore[arg-type]


@dataclass(frozen=True)
class FriendRequest:
    friend_username: str

    @classmethod
    def from_dict(cls, body: Any) -> "FriendRequest":
        data = _require_object(body)
        friend_username = _string(data, "friendUsername", min_length=1)
        return cls(friend_username=friend_username)  # type: ignore[arg-type]


@dataclass(frozen=True)
class UploadRequest:
    """A request for a presigned photo upload URL."""

    file_name: str
    content_type: str

    @classmethod
    def from_dict(cls, body: Any) -> "UploadRequest":
        data = _require_object(body)
        file_name = _string(data, "fileName", min_length=1)
        content_type = _string(data, "contentType")
        if not (content_type or "").startswith("image/"):
            raise ValidationError("contentType", content_type, "contentType must be an image type")
        return cls(file_name=file_name, content_type=content_type)  # type: ignore[arg-type]

    @property
    def extension(self) -> str:
        ext = self.file_name.rsplit(".", 1)[-1] if "." in self.file_name else ""
        return ext or "jpg"


@dataclass(frozen=True)
class CaffeineQuery:
    drink_name: str

    @classmethod
    def from_dict(cls, body: Any) -> "CaffeineQuery":
        data = _require_object(body)
        return cls(drink_name=_string(data, "drinkName", 1, 100))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlaceAggregate:
    """
    Derived rating summary of a place.

    Attributes:
        avg_rating: Mean of each user's latest stars, one decimal place
        rating_count: Number of distinct contributing users
    """

    avg_rating: float
    rating_count: int
