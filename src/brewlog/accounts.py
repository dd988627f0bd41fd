"""User accounts: registration, login and profile lookup."""

import logging
from typing import Any

import bcrypt
from botocore.exceptions import ClientError

from . import schema
from .exceptions import AuthenticationError, UsernameTakenError, UserNotFoundError
from .models import Credentials, NewUser, generate_id, utc_timestamp
from .projector import read_str, strip_item
from .repository import Repository

logger = logging.getLogger(__name__)


def hash_password(plain: str) -> str:
    """Hash a plain password for storing. Bcrypt only looks at 72 bytes."""
    pw_bytes = plain.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    """Check a plain password against a stored hash; malformed hashes never match."""
    pw_bytes = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("ascii"))
    except ValueError:
        return False


class Accounts:
    """Account operations over the profile and username-index items."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def _user_id_for(self, username: str) -> str | None:
        index = await self.repository.get_item(
            schema.key(schema.pk_username(username), schema.sk_username())
        )
        return read_str(index or {}, "userId")

    async def create_user(self, new_user: NewUser) -> dict[str, Any]:
        """
        Register a user.

        The username index item is claimed first with a conditional put, so
        two concurrent registrations of one name cannot both succeed. If the
        profile write then fails, the claim is deleted before the error
        propagates.

        Raises:
            UsernameTakenError: If the username is already registered
        """
        username = new_user.username.lower()
        user_id = generate_id()
        created_at = utc_timestamp()

        try:
            await self.repository.put_item(
                {
                    "PK": schema.pk_username(username),
                    "SK": schema.sk_username(),
                    "userId": user_id,
                    "entityType": schema.ENTITY_USERNAME,
                },
                condition_expression="attribute_not_exists(PK)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise UsernameTakenError(username) from e
            raise

        try:
            await self.repository.put_item(
                {
                    "PK": schema.pk_user(user_id),
                    "SK": schema.sk_profile(),
                    "userId": user_id,
                    "username": username,
                    "displayName": new_user.display_name,
                    "passwordHash": hash_password(new_user.password),
                    "totalCaffeineMg": 0,
                    "createdAt": created_at,
                    "entityType": schema.ENTITY_USER,
                }
            )
        except ClientError:
            logger.warning("Profile write failed for %s, releasing username", username)
            await self.repository.delete_item(
                schema.key(schema.pk_username(username), schema.sk_username())
            )
            raise
        logger.info("Registered user %s (%s)", user_id, username)
        return {
            "userId": user_id,
            "username": username,
            "displayName": new_user.display_name,
            "createdAt": created_at,
        }

    async def login(self, credentials: Credentials) -> dict[str, Any]:
        """
        Check a username/password pair and return the profile.

        Raises:
            AuthenticationError: Unknown user or wrong password, without
                saying which
        """
        user_id = await self._user_id_for(credentials.username)
        if not user_id:
            raise AuthenticationError()

        profile = await self.repository.get_item(
            schema.key(schema.pk_user(user_id), schema.sk_profile())
        )
        password_hash = read_str(profile or {}, "passwordHash")
        if not password_hash or not verify_password(credentials.password, password_hash):
            raise AuthenticationError()
        return strip_item(profile or {}, secret=True)

    async def get_user(self, username: str) -> dict[str, Any]:
        """
        Public profile by username (case-insensitive).

        Raises:
            UserNotFoundError: If the username or its profile is missing
        """
        user_id = await self._user_id_for(username)
        if not user_id:
            raise UserNotFoundError(username)

        profile = await self.repository.get_item(
            schema.key(schema.pk_user(user_id), schema.sk_profile())
        )
        if profile is None:
            raise UserNotFoundError(user_id, "User profile not found")
        return strip_item(profile, secret=True)
