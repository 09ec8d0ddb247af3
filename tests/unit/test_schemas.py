"""Tests for core schemas: records, recommendations, updates."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.core.schemas import (
    ChannelRecord,
    Credentials,
    Photo,
    Recommendation,
    Update,
    UpdateBatch,
)


def _make_recommendation(**overrides: object) -> Recommendation:
    defaults: dict[str, object] = {
        "channel": "happn",
        "channel_id": "u1",
        "name": "Alice",
        "photos": [Photo(url="https://img.test/1.jpg", id="p1")],
        "data": {"id": "u1"},
    }
    defaults.update(overrides)
    return Recommendation(**defaults)  # type: ignore[arg-type]


class TestChannelRecord:
    def test_defaults(self) -> None:
        r = ChannelRecord(name="happn")
        assert r.is_enabled is False
        assert r.user_id is None
        assert r.last_activity_date is None

    def test_with_cursor(self) -> None:
        when = datetime(2026, 1, 1, tzinfo=timezone.utc)
        r = ChannelRecord(name="happn", last_activity_date=when)
        assert r.last_activity_date == when


class TestPhoto:
    def test_extra_fields_ignored(self) -> None:
        p = Photo.model_validate({"url": "u", "id": "1", "width": 720, "mode": 0})
        assert p.model_dump() == {"url": "u", "id": "1"}


class TestRecommendation:
    def test_defaults(self) -> None:
        r = Recommendation(channel="happn", channel_id="u1")
        assert r.photos == []
        assert r.match_id is None
        assert r.data == {}

    def test_frozen_model(self) -> None:
        r = _make_recommendation()
        with pytest.raises(ValidationError):
            r.name = "Bob"  # type: ignore[misc]

    def test_json_dump(self) -> None:
        dumped = _make_recommendation().model_dump(mode="json")
        assert dumped["channel"] == "happn"
        assert dumped["photos"] == [{"url": "https://img.test/1.jpg", "id": "p1"}]


class TestUpdate:
    def test_defaults(self) -> None:
        u = Update(recommendation=_make_recommendation())
        assert u.is_new_match is True
        assert u.messages == []


class TestUpdateBatch:
    def test_starts_empty(self) -> None:
        b = UpdateBatch()
        assert b.matches == []
        assert b.conversations == []

    def test_batches_do_not_share_lists(self) -> None:
        a = UpdateBatch()
        a.matches.append({"id": "1"})
        assert UpdateBatch().matches == []


class TestCredentials:
    def test_frozen(self) -> None:
        c = Credentials(user_id="u", token="t")
        with pytest.raises(ValidationError):
            c.token = "other"  # type: ignore[misc]
