"""Shared router helper functions."""

from __future__ import annotations

import json
from dataclasses import asdict
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.core.state import get_app_state

if TYPE_CHECKING:
    from fastapi import Request

    from economy_sim_service.services.engine import SimulationEngine

E = TypeVar("E", bound=StrEnum)

MAX_LIST_LIMIT = 500


def get_engine() -> SimulationEngine:
    """Return the running engine, failing loudly if startup has not happened."""
    state = get_app_state()
    if state.engine is None:
        msg = "SimulationEngine not initialized"
        raise RuntimeError(msg)
    return state.engine


def parse_json_body(body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


async def optional_json_body(request: Request) -> dict[str, Any]:
    """Parse the body if one was sent; an empty body is an empty object."""
    body = await request.body()
    return {} if body.strip() == b"" else parse_json_body(body)


def require_int(data: dict[str, Any], field_name: str) -> int:
    """Extract a required integer field. Booleans are rejected."""
    value = data.get(field_name)
    if value is None:
        raise ServiceError(
            "INVALID_FIELD",
            f"Missing required field: {field_name}",
            400,
            {"field": field_name},
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise ServiceError(
            "INVALID_FIELD",
            f"Field '{field_name}' must be an integer",
            400,
            {"field": field_name},
        )
    return value


def require_str(data: dict[str, Any], field_name: str) -> str:
    """Extract a required non-empty string field."""
    value = optional_str(data, field_name)
    if value is None:
        raise ServiceError(
            "INVALID_FIELD",
            f"Missing required field: {field_name}",
            400,
            {"field": field_name},
        )
    return value


def optional_str(data: dict[str, Any], field_name: str) -> str | None:
    """Extract an optional non-empty string field."""
    value = data.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ServiceError(
            "INVALID_FIELD",
            f"Field '{field_name}' must be a non-empty string",
            400,
            {"field": field_name},
        )
    return value


def parse_enum(enum_type: type[E], raw: object, field_name: str) -> E:
    """Convert a raw value into ``enum_type`` or raise INVALID_FIELD."""
    try:
        return enum_type(raw)
    except ValueError as exc:
        raise ServiceError(
            "INVALID_FIELD",
            f"Field '{field_name}' must be one of {[member.value for member in enum_type]}",
            400,
            {"field": field_name},
        ) from exc


def query_enum(request: Request, enum_type: type[E], name: str) -> E | None:
    """Optional enum query parameter."""
    raw = request.query_params.get(name)
    if raw is None:
        return None
    return parse_enum(enum_type, raw.upper(), name)


def query_limit(request: Request, default: int) -> int:
    """Parse ``?limit=``, which must be an integer in 1..MAX_LIST_LIMIT."""
    raw = request.query_params.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError as exc:
        raise ServiceError("INVALID_FIELD", "limit must be an integer", 400, {}) from exc
    if limit < 1 or limit > MAX_LIST_LIMIT:
        raise ServiceError(
            "INVALID_FIELD",
            f"limit must be between 1 and {MAX_LIST_LIMIT}",
            400,
            {"limit": limit},
        )
    return limit


def to_payload(record: Any) -> dict[str, Any]:
    """Render a domain dataclass as a JSON-ready dict."""
    return asdict(record)
