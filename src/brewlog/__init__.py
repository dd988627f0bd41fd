"""
brewlog: coffee ratings, friends' feeds and place aggregates on one DynamoDB table.

Every rating lives as three copies (owner timeline, place timeline and a
META item holding the rating's own details and counters). The writer keeps
the copies and derived aggregates in step; the reader serves feeds and
timelines from them.

Example:
    from brewlog import Brewlog, NewRating, Settings

    async with Brewlog.from_settings(Settings.from_environment()) as app:
        created = await app.writer.create_rating(
            user_id,
            NewRating.from_dict({"placeId": "p1", "placeName": "Blue Door",
                                 "stars": 4.5, "drinkName": "flat white"}),
        )
        feed = await app.reader.feed(user_id, limit=10)
"""

from .accounts import Accounts
from .aggregates import AggregateRecomputer, compute_place_aggregate
from .app import Brewlog
from .caffeine import CaffeineEstimator, resolve_caffeine_mg
from .config import Settings
from .exceptions import (
    AuthenticationError,
    BrewlogError,
    ForbiddenError,
    NotFoundError,
    NotRatingOwnerError,
    PlaceNotFoundError,
    RatingNotFoundError,
    UsernameTakenError,
    UserNotFoundError,
    ValidationError,
)
from .models import (
    CaffeineQuery,
    Credentials,
    FriendRequest,
    NewComment,
    NewRating,
    NewUser,
    PlaceAggregate,
    RatingChanges,
    UploadRequest,
)
from .projector import ReadProjector
from .repository import Repository
from .storage import PhotoStorage
from .writer import ProjectionWriter

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Components
    "Brewlog",
    "Settings",
    "Repository",
    "ProjectionWriter",
    "ReadProjector",
    "AggregateRecomputer",
    "Accounts",
    "PhotoStorage",
    "CaffeineEstimator",
    "compute_place_aggregate",
    "resolve_caffeine_mg",
    # Models
    "NewRating",
    "RatingChanges",
    "NewUser",
    "Credentials",
    "NewComment",
    "FriendRequest",
    "UploadRequest",
    "CaffeineQuery",
    "PlaceAggregate",
    # Exceptions
    "BrewlogError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "AuthenticationError",
    "RatingNotFoundError",
    "UserNotFoundError",
    "PlaceNotFoundError",
    "UsernameTakenError",
    "NotRatingOwnerError",
]
