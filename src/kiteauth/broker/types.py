"""
Common Kite Connect auth types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field

# IST timezone offset (+5:30)
_IST = timezone(timedelta(hours=5, minutes=30))


@dataclass
class KiteCredentials:
    """API credentials for one Kite Connect app."""

    api_key: str | None = ""
    api_secret: str = ""
    redirect_url: str = ""


class KiteSession(BaseModel):
    """The ``data`` object of a successful ``/session/token`` response.

    Unknown fields sent by the broker are kept so the cached payload
    round-trips unchanged. Any field may come back as null.
    """

    access_token: str | None = ""
    login_time: str | None = ""
    public_token: str | None = ""
    user_id: str | None = ""
    user_name: str | None = ""
    user_shortname: str | None = ""
    user_type: str | None = ""
    email: str | None = ""
    broker: str | None = ""
    exchanges: list[str] | None = Field(default_factory=list)
    products: list[str] | None = Field(default_factory=list)
    order_types: list[str] | None = Field(default_factory=list)
    avatar_url: str | None = None
    api_key: str | None = ""
    enctoken: str | None = ""
    refresh_token: str | None = ""
    meta: dict[str, Any] | None = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class AccessTokenResponse(BaseModel):
    """Full response body of the token exchange."""

    status: str | None = ""
    data: KiteSession = Field(default_factory=KiteSession)

    model_config = {"extra": "allow"}


def session_expiry(login_time: str | None = "") -> datetime:
    """Return when a Kite session logged in at ``login_time`` expires.

    Kite access tokens expire at 6:00 AM IST the next day. ``login_time``
    is the broker's ``YYYY-MM-DD HH:MM:SS`` IST timestamp; when it is
    missing or unparseable the current time is used.
    """
    try:
        login_ist = datetime.fromisoformat(login_time or "").replace(tzinfo=_IST)
    except ValueError:
        login_ist = datetime.now(_IST)

    target = login_ist.replace(hour=6, minute=0, second=0, microsecond=0)

    # If login happened after 6:00 AM, expiry is the following morning
    if login_ist >= target:
        target += timedelta(days=1)

    return target
