"""Core data models shared by channel adapters."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChannelRecord(BaseModel):
    """Persisted state of one channel, keyed by name."""

    name: str
    is_enabled: bool = False
    user_id: str | None = None
    access_token: str | None = None
    facebook_access_token: str | None = None
    last_activity_date: datetime | None = None
    updated_at: datetime | None = None


class Credentials(BaseModel):
    """A platform session resolved by the authorization policy."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    token: str


class Photo(BaseModel):
    """A profile picture. Only ``url`` and ``id`` are kept from the payload."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    id: str | None = None


class Recommendation(BaseModel):
    """Normalized candidate or match emitted by every data-returning operation.

    Frozen — built once per response, never persisted by the adapter.
    """

    model_config = ConfigDict(frozen=True)

    channel: str
    channel_id: str
    name: str | None = None
    photos: list[Photo] = Field(default_factory=list)
    match_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class Update(BaseModel):
    """A "new match" notification pairing a recommendation with its messages."""

    model_config = ConfigDict(frozen=True)

    is_new_match: bool = True
    recommendation: Recommendation
    messages: list[dict[str, Any]] = Field(default_factory=list)


class UpdateBatch(BaseModel):
    """Raw platform items accumulated while paging through updates.

    ``conversations`` is never filled: happn updates only carry matches.
    """

    matches: list[dict[str, Any]] = Field(default_factory=list)
    conversations: list[dict[str, Any]] = Field(default_factory=list)
