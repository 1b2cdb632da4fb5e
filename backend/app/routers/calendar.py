"""
Calendar Router
===============
GET /api/v1/calendar/{year}/{month}?tz=<minutes>: monthly activity calendar.

Returns workouts, stretch sessions and meditation sessions for one local
calendar month, grouped by local date with a per-day summary. ``tz`` is
the client's offset in minutes ahead of UTC (-720..840, default 0).

Path and query values are parsed here rather than by FastAPI so a
non-numeric year gets the same message as an out-of-range one:

  400 invalid_year / invalid_month / invalid_timezone_offset
  500 internal_error: any source failure (details are logged, not returned)
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Query, status

from app.db.supabase import get_supabase_client
from app.models.calendar import CalendarDataResponse
from app.services.calendar import (
    CalendarValidationError,
    InvalidMonth,
    InvalidTimezoneOffset,
    InvalidYear,
    get_calendar_service,
    resolve_month_window,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/calendar", tags=["calendar"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_authenticated_user(authorization: str) -> dict:
    """Verify the JWT and return the user record from Supabase.

    Raises HTTPException 401 if the token is invalid or missing.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Missing or invalid authorization header", "code": "auth_required"},
        )

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Empty bearer token", "code": "auth_required"},
        )

    db = get_supabase_client()

    try:
        auth_response = db.auth.get_user(token)
    except Exception as exc:
        logger.warning("Auth token verification failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid or expired token", "code": "auth_invalid"},
        ) from exc

    if not auth_response or not auth_response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "User not found for token", "code": "auth_invalid"},
        )

    result = (
        db.table("users")
        .select("id")
        .eq("id", auth_response.user.id)
        .maybe_single()
        .execute()
    )

    if not result or not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "User profile not found", "code": "user_not_found"},
        )

    return result.data


def _parse_int(raw: str, error: type[CalendarValidationError]) -> int:
    """Parse a short base-10 integer ("-480", "2024"); anything else raises *error*."""
    text = raw.strip()
    digits = text[1:] if text[:1] in ("-", "+") else text
    if not (digits.isascii() and digits.isdigit()) or len(digits) > 9:
        raise error(raw)
    return int(text)


def _validation_failed(exc: CalendarValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": exc.message, "code": exc.code},
    )


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

@router.get(
    "/{year}/{month}",
    response_model=CalendarDataResponse,
    status_code=status.HTTP_200_OK,
    summary="Get the activity calendar for a month",
    description=(
        "Returns workouts, stretch sessions and meditation sessions for one local "
        "month, keyed by local date. Days without activity are omitted."
    ),
    responses={
        200: {"description": "Calendar returned (days may be empty)"},
        400: {"description": "Invalid year, month or timezone offset"},
        401: {"description": "Authentication required"},
        500: {"description": "An activity source could not be read"},
    },
)
async def get_month_calendar(
    year: str,
    month: str,
    tz: Optional[str] = Query(default=None, description="Minutes ahead of UTC, -720..840"),
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> CalendarDataResponse:
    """Fetch one month of activity for the authenticated user."""
    # ------------------------------------------------------------------
    # 1. Validate parameters (before touching auth or the DB)
    # ------------------------------------------------------------------
    try:
        year_value = _parse_int(year, InvalidYear)
        month_value = _parse_int(month, InvalidMonth)
        tz_value = 0 if tz is None else _parse_int(tz, InvalidTimezoneOffset)
        resolve_month_window(year_value, month_value, tz_value)
    except CalendarValidationError as exc:
        raise _validation_failed(exc) from exc

    # ------------------------------------------------------------------
    # 2. Auth
    # ------------------------------------------------------------------
    user = _get_authenticated_user(authorization)
    user_id: str = user["id"]

    # ------------------------------------------------------------------
    # 3. Aggregate
    # ------------------------------------------------------------------
    try:
        service = get_calendar_service()
        return await service.get_month_data(user_id, year_value, month_value, tz_value)
    except Exception as exc:
        logger.exception(
            "Failed to build calendar %s-%s (tz=%s) for user %s",
            year_value, month_value, tz_value, user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to get calendar data", "code": "internal_error"},
        ) from exc
