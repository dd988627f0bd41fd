"""Exceptions for brewlog."""

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class BrewlogError(Exception):
    """
    Base exception for all brewlog errors.

    Every exception raised on purpose by this library inherits from this
    class and carries the HTTP status the Lambda adapter reports it with.
    Anything else reaching the adapter is an unexpected failure (500).
    """

    status_code = 500


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class ValidationError(BrewlogError):
    """
    Raised when caller input is malformed or out of range.

    Attributes:
        field: Name of the first field that violated a constraint
        value: The rejected value
        reason: Human-readable description of the violated constraint
    """

    status_code = 400

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(reason)


class NotFoundError(BrewlogError):
    """Base exception for a referenced entity that does not exist."""

    status_code = 404


class ForbiddenError(BrewlogError):
    """Raised when the caller does not own the resource it is mutating."""

    status_code = 403


class AuthenticationError(BrewlogError):
    """Raised when a username/password pair does not match."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


# ---------------------------------------------------------------------------
# Not Found Exceptions
# ---------------------------------------------------------------------------


class RatingNotFoundError(NotFoundError):
    """Raised when a rating's META item is missing."""

    def __init__(self, rating_id: str) -> None:
        self.rating_id = rating_id
        super().__init__("Rating not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be resolved by id or username."""

    def __init__(self, identifier: str, message: str = "User not found") -> None:
        self.identifier = identifier
        super().__init__(message)


class PlaceNotFoundError(NotFoundError):
    """Raised when a place has no META item."""

    def __init__(self, place_id: str) -> None:
        self.place_id = place_id
        super().__init__("Place not found")


# ---------------------------------------------------------------------------
# Specific Exceptions
# ---------------------------------------------------------------------------


class UsernameTakenError(ValidationError):
    """Raised when trying to register a username that already exists."""

    def __init__(self, username: str) -> None:
        super().__init__("username", username, "Username already taken")


class NotRatingOwnerError(ForbiddenError):
    """Raised when a caller edits a rating created by someone else."""

    def __init__(self, rating_id: str, user_id: str) -> None:
        self.rating_id = rating_id
        self.user_id = user_id
        super().__init__("You can only edit your own ratings")
