"""Integration test: adapter + real client + SQLite store against a fake happn API."""

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from main import main
from src.channels.base import AuthorizationPolicy
from src.channels.happn import CHANNEL_NAME, HappnChannel
from src.channels.session import Session
from src.channels.store import ChannelStore
from src.core.config import HappnConfig
from src.core.db import init_db
from src.core.errors import NotAuthorizedError
from src.happn.client import HappnClient

NOW = datetime.now(timezone.utc)

# ---------------------------------------------------------------------------
# Fake happn API
# ---------------------------------------------------------------------------


def _person(user_id: str, name: str, relation: int = 0) -> dict[str, Any]:
    return {
        "id": user_id,
        "first_name": name,
        "my_relation": relation,
        "profiles": [{"id": f"{user_id}-p", "url": f"https://img.test/{user_id}.jpg", "width": 1}],
    }


class FakeHappn:
    """Routes requests like the happn API; newest notifications first."""

    def __init__(self, notifications: list[dict[str, Any]]) -> None:
        self.notifications = notifications
        self.relations: dict[str, int] = {}
        self.valid_token = "happn-tok"
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/connect/oauth/token":
            return httpx.Response(200, json={
                "user_id": "me", "access_token": self.valid_token, "refresh_token": "r",
            })

        if request.headers.get("authorization") != f'OAuth="{self.valid_token}"':
            return httpx.Response(401, json={"error": "invalid_token"})

        if path == "/api/users/me/crossings":
            limit = int(request.url.params["limit"])
            crossings = [
                {"id": f"c{i}", "notifier": _person(f"r{i}", f"Rec{i}")}
                for i in range(limit)
            ]
            return httpx.Response(200, json={"data": crossings})

        if path == "/api/users/me/notifications":
            limit = int(request.url.params["limit"])
            offset = int(request.url.params["offset"])
            return httpx.Response(200, json={"data": self.notifications[offset:offset + limit]})

        if path.startswith("/api/users/me/accepted/"):
            user_id = path.rsplit("/", 1)[1]
            self.relations[user_id] = 4 if user_id.startswith("fan") else 1
            return httpx.Response(200, json={"success": True})

        if path.startswith("/api/users/"):
            user_id = path.rsplit("/", 1)[1]
            relation = self.relations.get(user_id, 0)
            return httpx.Response(200, json={"data": _person(user_id, "User", relation)})

        return httpx.Response(404, json={})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _notification(user_id: str, age: timedelta) -> dict[str, Any]:
    return {
        "id": f"n-{user_id}",
        "creation_date": (NOW - age).isoformat(),
        "notifier": _person(user_id, user_id.title()),
    }


@pytest.fixture
def db(tmp_path: pytest.TempPathFactory) -> sqlite3.Connection:  # type: ignore[type-arg]
    return init_db(tmp_path / "test.db")


@pytest.fixture
def store(db: sqlite3.Connection) -> ChannelStore:
    store = ChannelStore(db)
    store.save([CHANNEL_NAME], facebook_access_token="fb-token")
    return store


@pytest.fixture
def fake() -> FakeHappn:
    # 25 notifications, one hour apart, newest first.
    return FakeHappn([_notification(f"m{i:02d}", timedelta(hours=i + 1)) for i in range(25)])


def _channel(fake: FakeHappn, store: ChannelStore) -> tuple[HappnChannel, HappnClient]:
    session = Session()
    config = HappnConfig(base_url="https://api.happn.test")
    client = HappnClient(config, session, transport=httpx.MockTransport(fake))
    channel = HappnChannel(client, session, store, AuthorizationPolicy(store), config=config)
    return channel, client


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHappnFlow:
    async def test_authorize_then_recommendations(
        self, fake: FakeHappn, store: ChannelStore,
    ) -> None:
        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()
            recommendations = await channel.get_recommendations()

        assert len(recommendations) == 16
        assert recommendations[0].channel_id == "r0"
        assert recommendations[0].photos[0].model_dump() == {
            "url": "https://img.test/r0.jpg", "id": "r0-p",
        }
        assert store.find_by_name(CHANNEL_NAME).access_token == "happn-tok"

    async def test_second_run_reuses_stored_session(
        self, fake: FakeHappn, store: ChannelStore,
    ) -> None:
        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()

        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()
            await channel.get_recommendations()

        assert fake.paths().count("/connect/oauth/token") == 1

    async def test_updates_first_run_then_incremental(
        self, fake: FakeHappn, store: ChannelStore,
    ) -> None:
        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()
            first = await channel.get_updates()

            assert len(first) == 25
            assert first[0].recommendation.channel_id == "m00"
            offsets = [
                r.url.params["offset"] for r in fake.requests
                if r.url.path.endswith("/notifications")
            ]
            assert offsets == ["0", "10", "20", "30"]

            # A new match arrives after the cursor moved to "now".
            fake.notifications.insert(0, _notification("fresh", timedelta(hours=-1)))
            fake.requests.clear()
            second = await channel.get_updates()

        assert [u.recommendation.channel_id for u in second] == ["fresh"]
        assert fake.paths().count("/api/users/me/notifications") == 1

    async def test_like_match_and_no_match(
        self, fake: FakeHappn, store: ChannelStore,
    ) -> None:
        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()
            match = await channel.like("fan1")
            no_match = await channel.like("stranger")

        assert match is not None
        assert match.channel_id == "fan1"
        assert no_match is None

    async def test_revoked_token_recovery(
        self, fake: FakeHappn, store: ChannelStore,
    ) -> None:
        channel, client = _channel(fake, store)
        async with client:
            await channel.authorize()
            fake.valid_token = "rotated"

            with pytest.raises(NotAuthorizedError):
                await channel.get_user("u1")

            assert channel.session.access_token is None
            assert store.find_by_name(CHANNEL_NAME).access_token is None

            # Next authorize performs a fresh exchange and works again.
            await channel.authorize()
            user = await channel.get_user("u1")

        assert user.channel_id == "u1"
        assert fake.paths().count("/connect/oauth/token") == 2


class TestCli:
    def test_recommendations_json(
        self,
        tmp_path: Path,
        fake: FakeHappn,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        db_path = tmp_path / "cli.db"
        conn = init_db(db_path)
        ChannelStore(conn).save([CHANNEL_NAME], facebook_access_token="fb", is_enabled=True)
        conn.close()
        cfg = tmp_path / "settings.yaml"
        cfg.write_text(
            f"database:\n  path: {db_path}\n"
            "happn:\n  base_url: https://api.happn.test\n  recommendations_limit: 3\n"
        )

        def _client(config: HappnConfig, session: Session) -> HappnClient:
            return HappnClient(config, session, transport=httpx.MockTransport(fake))

        with patch("main.HappnClient", side_effect=_client):
            main(["recommendations", "--config", str(cfg)])

        output = json.loads(capsys.readouterr().out)
        assert [r["channel_id"] for r in output] == ["r0", "r1", "r2"]
        assert all(r["channel"] == "happn" for r in output)
