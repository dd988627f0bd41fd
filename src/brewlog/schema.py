"""DynamoDB schema definitions and key builders."""

from typing import Any

# Table name
DEFAULT_TABLE_NAME = "CoffeeApp"

# Partition key prefixes
USER_PREFIX = "USER#"
USERNAME_PREFIX = "USERNAME#"
PLACE_PREFIX = "PLACE#"
RATING_PREFIX = "RATING#"

# Sort keys and sort key prefixes
SK_PROFILE = "PROFILE"
SK_USERNAME = "USERNAME"
SK_META = "META"
SK_RATING = "RATING#"
SK_LIKE = "LIKE#"
SK_COMMENT = "COMMENT#"
SK_PLACE = "PLACE#"
SK_FRIEND = "FRIEND#"
SK_FOLLOWER = "FOLLOWER#"

# Upper bound for "everything under this prefix" BETWEEN queries
SK_HIGH_SENTINEL = "\uffff"

# Entity type tags
ENTITY_USER = "User"
ENTITY_USERNAME = "UsernameIndex"
ENTITY_RATING = "Rating"
ENTITY_PLACE_RATING = "PlaceRating"
ENTITY_RATING_META = "RatingMeta"
ENTITY_LIKE = "Like"
ENTITY_COMMENT = "Comment"
ENTITY_PLACE = "Place"
ENTITY_USER_PLACE = "UserPlace"
ENTITY_FRIEND = "Friend"
ENTITY_FOLLOWER = "Follower"

# Attributes that exist only for the store and never reach a caller
STORAGE_ATTRIBUTES = ("PK", "SK", "entityType")
SECRET_ATTRIBUTES = ("passwordHash",)


def pk_user(user_id: str) -> str:
    """Build partition key for a user's partition."""
    return f"{USER_PREFIX}{user_id}"


def pk_username(username: str) -> str:
    """Build partition key for the username uniqueness index."""
    return f"{USERNAME_PREFIX}{username.lower()}"


def pk_place(place_id: str) -> str:
    """Build partition key for a place's partition."""
    return f"{PLACE_PREFIX}{place_id}"


def pk_rating(rating_id: str) -> str:
    """Build partition key for a rating's META, likes and comments."""
    return f"{RATING_PREFIX}{rating_id}"


def sk_profile() -> str:
    return SK_PROFILE


def sk_username() -> str:
    return SK_USERNAME


def sk_meta() -> str:
    return SK_META


def sk_rating(created_at: str, rating_id: str) -> str:
    """Build sort key shared by the owner and place copies of a rating."""
    return f"{SK_RATING}{created_at}#{rating_id}"


def sk_like(user_id: str) -> str:
    return f"{SK_LIKE}{user_id}"


def sk_comment(created_at: str, comment_id: str) -> str:
    return f"{SK_COMMENT}{created_at}#{comment_id}"


def sk_user_place(place_id: str) -> str:
    return f"{SK_PLACE}{place_id}"


def sk_friend(friend_user_id: str) -> str:
    return f"{SK_FRIEND}{friend_user_id}"


def sk_follower(follower_user_id: str) -> str:
    return f"{SK_FOLLOWER}{follower_user_id}"


def key(pk: str, sk: str) -> dict[str, str]:
    """Build a plain (untyped) primary key."""
    return {"PK": pk, "SK": sk}


def rating_copy_keys(
    user_id: str, place_id: str, created_at: str, rating_id: str
) -> list[dict[str, str]]:
    """
    Keys of every item that carries a rating's denormalized counters.

    Order is META, owner copy, place copy.
    """
    rating_sk = sk_rating(created_at, rating_id)
    return [
        key(pk_rating(rating_id), sk_meta()),
        key(pk_user(user_id), rating_sk),
        key(pk_place(place_id), rating_sk),
    ]


def parse_rating_pk(pk: str) -> str:
    """Parse rating_id from a RATING# partition key."""
    if not pk.startswith(RATING_PREFIX):
        raise ValueError(f"Invalid rating PK: {pk}")
    return pk[len(RATING_PREFIX) :]


def get_table_definition(table_name: str) -> dict[str, Any]:
    """
    Get the DynamoDB table definition for CreateTable.

    Returns a dictionary suitable for boto3 create_table().
    """
    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        "KeySchema": [
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
    }
