"""Lambda handler for the brewlog HTTP API (API Gateway HTTP API, payload v2)."""

import asyncio
import base64
import json
import time
import traceback
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .app import Brewlog
from .config import Settings
from .exceptions import BrewlogError, ValidationError
from .models import (
    CaffeineQuery,
    Credentials,
    FriendRequest,
    NewComment,
    NewRating,
    NewUser,
    RatingChanges,
    UploadRequest,
)

USER_ID_HEADER = "x-user-id"

CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, x-user-id",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}


class StructuredLogger:
    """JSON-formatted logger for CloudWatch Logs Insights."""

    def __init__(self, name: str):
        self._name = name

    def _log(self, level: str, message: str, **extra: Any) -> None:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "logger": self._name,
            "message": message,
            **extra,
        }
        print(json.dumps(log_entry, default=str))

    def info(self, message: str, **extra: Any) -> None:
        self._log("INFO", message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self._log("WARNING", message, **extra)

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        if exc_info:
            extra["exception"] = traceback.format_exc()
        self._log("ERROR", message, **extra)


logger = StructuredLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


@dataclass
class Request:
    """The parts of an API Gateway event the routes look at."""

    headers: dict[str, str] = field(default_factory=dict)
    path: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    raw_body: str | None = None

    @classmethod
    def from_event(cls, event: Mapping[str, Any]) -> "Request":
        body = event.get("body")
        if body is not None and event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        return cls(
            headers={k.lower(): v for k, v in (event.get("headers") or {}).items()},
            path=dict(event.get("pathParameters") or {}),
            query=dict(event.get("queryStringParameters") or {}),
            raw_body=body,
        )

    @property
    def viewer_id(self) -> str | None:
        """Caller id when supplied; optional on read routes."""
        return self.headers.get(USER_ID_HEADER) or None

    @property
    def user_id(self) -> str:
        """Caller id, required on routes that act on the caller's behalf."""
        user_id = self.viewer_id
        if not user_id:
            raise ValidationError(USER_ID_HEADER, None, "Missing x-user-id header")
        return user_id

    def param(self, name: str) -> str:
        value = self.path.get(name)
        if not value:
            raise ValidationError(name, value, f"{name} is required")
        return value

    def json(self) -> Any:
        if not self.raw_body:
            return {}
        try:
            return json.loads(self.raw_body)
        except ValueError as e:
            raise ValidationError("body", self.raw_body, "Request body must be valid JSON") from e


def respond(status_code: int, body: Any) -> dict[str, Any]:
    return {"statusCode": status_code, "headers": dict(CORS_HEADERS), "body": json.dumps(body)}


def error_response(status_code: int, message: str) -> dict[str, Any]:
    return respond(status_code, {"error": message})


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

Route = Callable[[Brewlog, Request], Awaitable[tuple[int, Any]]]
ROUTES: dict[str, Route] = {}


def route(route_key: str) -> Callable[[Route], Route]:
    def register(fn: Route) -> Route:
        ROUTES[route_key] = fn
        return fn

    return register


@route("POST /api/users")
async def create_user(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 201, await app.accounts.create_user(NewUser.from_dict(request.json()))


@route("POST /api/auth/login")
async def login(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.accounts.login(Credentials.from_dict(request.json()))


@route("GET /api/users/{username}")
async def get_user(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.accounts.get_user(request.param("username"))


@route("POST /api/ratings")
async def create_rating(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    rating = NewRating.from_dict(request.json())
    return 201, await app.writer.create_rating(user_id, rating)


@route("PUT /api/ratings/{ratingId}")
async def edit_rating(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    rating_id = request.param("ratingId")
    changes = RatingChanges.from_dict(request.json())
    return 200, await app.writer.edit_rating(user_id, rating_id, changes)


@route("GET /api/ratings/{ratingId}")
async def rating_detail(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.rating_detail(request.param("ratingId"), request.viewer_id)


@route("POST /api/ratings/{ratingId}/like")
async def toggle_like(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    return 200, await app.writer.toggle_like(user_id, request.param("ratingId"))


@route("POST /api/ratings/{ratingId}/comments")
async def create_comment(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    rating_id = request.param("ratingId")
    comment = NewComment.from_dict(request.json())
    return 201, await app.writer.create_comment(user_id, rating_id, comment)


@route("GET /api/users/{userId}/ratings")
async def user_ratings(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.user_ratings(
        request.param("userId"),
        limit=request.query.get("limit"),
        cursor=request.query.get("cursor"),
        viewer_id=request.viewer_id,
    )


@route("GET /api/places/{placeId}/ratings")
async def place_ratings(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.place_ratings(
        request.param("placeId"),
        limit=request.query.get("limit"),
        cursor=request.query.get("cursor"),
        viewer_id=request.viewer_id,
    )


@route("GET /api/users/{userId}/places")
async def user_places(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.user_places(request.param("userId"))


@route("GET /api/places/{placeId}")
async def get_place(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.place(request.param("placeId"))


@route("POST /api/friends")
async def add_friend(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    return 201, await app.writer.add_friend(user_id, FriendRequest.from_dict(request.json()))


@route("GET /api/users/{userId}/friends")
async def friends(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.friends(request.param("userId"))


@route("GET /api/users/{userId}/followers")
async def followers(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.followers(request.param("userId"))


@route("GET /api/feed")
async def feed(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.feed(
        request.user_id,
        limit=request.query.get("limit"),
        cursor=request.query.get("cursor") or None,
    )


@route("GET /api/users/{userId}/caffeine")
async def caffeine_stats(app: Brewlog, request: Request) -> tuple[int, Any]:
    return 200, await app.reader.caffeine_stats(request.param("userId"))


@route("POST /api/caffeine/resolve")
async def resolve_caffeine(app: Brewlog, request: Request) -> tuple[int, Any]:
    query = CaffeineQuery.from_dict(request.json())
    mg = await app.estimator.estimate(query.drink_name)
    if mg is None:
        return 200, {"caffeineMg": 0, "source": "error"}
    return 200, {"caffeineMg": mg, "source": "ai"}


@route("POST /api/photos/upload-url")
async def upload_url(app: Brewlog, request: Request) -> tuple[int, Any]:
    user_id = request.user_id
    return 200, await app.storage.create_upload(user_id, UploadRequest.from_dict(request.json()))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def dispatch(event: Mapping[str, Any], app: Brewlog, request_id: str = "unknown") -> dict:
    """
    Run one API event against ``app`` and build the HTTP response.

    Library errors map to their status code with their message and are logged
    as warnings. Any other exception is logged with its traceback and reported
    as a generic 500.
    """
    start_time = time.perf_counter()
    route_key = str(event.get("routeKey", ""))
    fn = ROUTES.get(route_key)

    if fn is None:
        response = error_response(404, "Route not found")
    else:
        try:
            status_code, body = await fn(app, Request.from_event(event))
            response = respond(status_code, body)
        except BrewlogError as e:
            logger.warning(
                "Request rejected",
                request_id=request_id,
                route=route_key,
                status_code=e.status_code,
                error=str(e),
            )
            response = error_response(e.status_code, str(e))
        except Exception:
            logger.error("Unhandled error", exc_info=True, request_id=request_id, route=route_key)
            response = error_response(500, "Internal server error")

    logger.info(
        "Request completed",
        request_id=request_id,
        route=route_key,
        status_code=response["statusCode"],
        processing_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
    return response


async def _handle(event: Mapping[str, Any], request_id: str) -> dict:
    async with Brewlog.from_settings(Settings.from_environment()) as app:
        return await dispatch(event, app, request_id)


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler for API Gateway HTTP API events.

    Each invocation opens fresh store clients on its own event loop; no
    state survives between requests.

    Environment variables:
        TABLE_NAME: DynamoDB table name (default: CoffeeApp)
        DYNAMODB_ENDPOINT: Optional DynamoDB endpoint (local development)
        S3_BUCKET: Photo bucket (default: coffee-app-photos)
        S3_ENDPOINT: Optional S3 endpoint (local development)
        OPENAI_API_KEY: Enables the caffeine estimator
    """
    request_id = getattr(context, "aws_request_id", "unknown")
    return asyncio.run(_handle(event, request_id))
