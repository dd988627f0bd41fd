"""Declarative partial updates for denormalized rating copies.

Every copy of a rating is updated from the same request through one
builder, driven by a table of field specs. Adding a field to a copy means
adding it to that copy's spec list, never writing another branch.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NullAction(Enum):
    """What an explicit null in the request does to the stored attribute."""

    REJECT = "reject"  # field is not nullable; validation never lets null through
    REMOVE = "remove"  # attribute is deleted, not set to an empty value
    SET_EMPTY = "set_empty"  # attribute is stored as ""


@dataclass(frozen=True)
class FieldSpec:
    """
    How one request field maps onto one stored attribute.

    Attributes:
        name: Field name in the request body
        attribute: Stored attribute name (defaults to ``name``)
        on_null: Action for an explicit null
    """

    name: str
    attribute: str | None = None
    on_null: NullAction = NullAction.REJECT

    @property
    def target(self) -> str:
        return self.attribute or self.name


@dataclass
class PartialUpdate:
    """SET and REMOVE parts of one item update."""

    set_values: dict[str, Any] = field(default_factory=dict)
    remove: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.set_values or self.remove)


def build_partial_update(
    changes: Mapping[str, Any],
    specs: Sequence[FieldSpec],
    always_set: Mapping[str, Any] | None = None,
) -> PartialUpdate:
    """
    Build the update for one item from the fields present in a request.

    A present non-null field is SET. A present null field follows its
    spec's ``on_null``. A field absent from ``changes`` is untouched.

    Args:
        changes: Fields present in the request (absent fields are missing keys)
        specs: Fields this item stores
        always_set: Attributes set regardless of the request (e.g. updatedAt)

    Raises:
        ValueError: If a non-nullable field carries null
    """
    update = PartialUpdate(set_values=dict(always_set or {}))
    for spec in specs:
        if spec.name not in changes:
            continue
        value = changes[spec.name]
        if value is not None:
            update.set_values[spec.target] = value
        elif spec.on_null is NullAction.REMOVE:
            update.remove.append(spec.target)
        elif spec.on_null is NullAction.SET_EMPTY:
            update.set_values[spec.target] = ""
        else:
            raise ValueError(f"{spec.name} cannot be null")
    return update


# ---------------------------------------------------------------------------
# Field tables for the rating edit path
# ---------------------------------------------------------------------------

_STARS = FieldSpec("stars")
_DRINK_NAME = FieldSpec("drinkName")
_DESCRIPTION = FieldSpec("description", on_null=NullAction.REMOVE)
_PHOTO_KEY = FieldSpec("photoKey", on_null=NullAction.REMOVE)
_CAFFEINE_MG = FieldSpec("caffeineMg")
_PLACE_NAME = FieldSpec("placeName")
_LAT = FieldSpec("lat")
_LNG = FieldSpec("lng")
_ADDRESS = FieldSpec("address", on_null=NullAction.REMOVE)

RATING_META_FIELDS: tuple[FieldSpec, ...] = (
    _STARS,
    _DRINK_NAME,
    _DESCRIPTION,
    _PHOTO_KEY,
    _CAFFEINE_MG,
    _PLACE_NAME,
    _LAT,
    _LNG,
    _ADDRESS,
)
OWNER_COPY_FIELDS: tuple[FieldSpec, ...] = RATING_META_FIELDS
# Place name and location live on Place META, not on the place's rating copies
PLACE_COPY_FIELDS: tuple[FieldSpec, ...] = (
    _STARS,
    _DRINK_NAME,
    _DESCRIPTION,
    _PHOTO_KEY,
    _CAFFEINE_MG,
    _ADDRESS,
)

# Place info edited through a rating. A null address is stored as "" here,
# unlike on the rating copies where it is removed.
PLACE_META_INFO_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("placeName", attribute="name"),
    _LAT,
    _LNG,
    FieldSpec("address", on_null=NullAction.SET_EMPTY),
)
USER_PLACE_INFO_FIELDS: tuple[FieldSpec, ...] = (
    _PLACE_NAME,
    _LAT,
    _LNG,
    FieldSpec("address", on_null=NullAction.SET_EMPTY),
)
PLACE_INFO_NAMES = frozenset(spec.name for spec in PLACE_META_INFO_FIELDS)
