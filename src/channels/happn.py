"""happn channel adapter: wires the happn client, session, store, and policy.

Every operation except ``authorize`` requires an access token in the session
and fails with NotAuthorizedError before any network call otherwise. A
not-authorized error reported by the platform clears the session and goes
through ``on_not_authorized_error``; any other error propagates unchanged.
"""

import logging
from datetime import datetime, timezone
from typing import Any, NoReturn

from src.channels.base import AuthorizationPolicy, ChannelAdapter
from src.channels.session import Session
from src.channels.store import ChannelStore
from src.core.config import HappnConfig
from src.core.errors import InvalidArgumentError, NotAuthorizedError
from src.core.schemas import (
    ChannelRecord,
    Credentials,
    Photo,
    Recommendation,
    Update,
    UpdateBatch,
)
from src.happn.client import HappnApiError, HappnClient

logger = logging.getLogger(__name__)

CHANNEL_NAME = "happn"

# my_relation value happn reports once both users liked each other.
MUTUAL_MATCH_RELATION = 4


class HappnChannel(ChannelAdapter):
    """happn adapter for one account.

    The session is injected and shared with the client, so the single-account
    assumption is explicit: one Session, one HappnClient, one adapter.
    """

    def __init__(
        self,
        client: HappnClient,
        session: Session,
        store: ChannelStore,
        policy: AuthorizationPolicy,
        *,
        config: HappnConfig | None = None,
    ) -> None:
        self._client = client
        self._session = session
        self._store = store
        self._policy = policy
        self._config = config or HappnConfig()

    @property
    def name(self) -> str:
        return CHANNEL_NAME

    @property
    def session(self) -> Session:
        return self._session

    async def authorize(self) -> None:
        record = self._store.find_by_name(self.name)
        credentials = await self._policy.find_or_authorize_if_needed(
            record, self._exchange_facebook_token,
        )
        self._session.user_id = credentials.user_id
        self._session.access_token = credentials.token

    async def _exchange_facebook_token(self, record: ChannelRecord) -> Credentials:
        await self._client.authorize(record.facebook_access_token or "")
        return Credentials(
            user_id=self._session.user_id or "",
            token=self._session.access_token or "",
        )

    async def get_recommendations(self) -> list[Recommendation]:
        self._require_session()
        try:
            payload = await self._client.get_recommendations(
                self._config.recommendations_limit,
            )
        except HappnApiError as exc:
            if not exc.is_not_authorized:
                raise
            await self.on_not_authorized_error()

        crossings = payload.get("data") or []
        logger.info("Fetched %d happn recommendations", len(crossings))
        return [
            _normalize(item["notifier"], data=item)
            for item in crossings
        ]

    async def get_updates(self) -> list[Update]:
        """Return matches newer than the stored activity cursor.

        The cursor then moves to the current time, not to the newest match.
        """
        self._require_session()
        try:
            cursor = self._store.find_by_name(self.name).last_activity_date
            batch = await self._collect_updates(cursor)
        except HappnApiError as exc:
            if not exc.is_not_authorized:
                raise
            await self.on_not_authorized_error()

        self._store.save([self.name], last_activity_date=datetime.now(timezone.utc))
        logger.info(
            "Fetched %d new happn matches (cursor: %s)",
            len(batch.matches), cursor.isoformat() if cursor else "none",
        )

        updates: list[Update] = []
        for match in batch.matches:
            notifier = match["notifier"]
            recommendation = _normalize(notifier, data=notifier).model_copy(
                update={"match_id": str(notifier["id"])},
            )
            updates.append(Update(is_new_match=True, recommendation=recommendation))
        return updates

    async def _collect_updates(self, cursor: datetime | None) -> UpdateBatch:
        """Page through match notifications, newest first, until the cursor.

        Stops when a page is empty or starts at/before the cursor, or when a
        page ends at/before the cursor. Only items strictly newer are kept.
        """
        batch = UpdateBatch()
        limit = self._config.updates_page_size
        offset = 0

        while True:
            payload = await self._client.get_updates(limit, offset)
            page: list[dict[str, Any]] = (payload.get("matches") or {}).get("data") or []

            if not page or not _is_newer(page[0], cursor):
                logger.debug("Page at offset %d holds nothing new, stopping", offset)
                return batch

            batch.matches.extend(item for item in page if _is_newer(item, cursor))

            if not _is_newer(page[-1], cursor):
                logger.debug("Page at offset %d reaches the cursor, stopping", offset)
                return batch

            offset += limit

    async def like(self, user_id: str) -> Recommendation | None:
        """Like ``user_id``; returns the user only if it is now a mutual match."""
        if not user_id:
            raise InvalidArgumentError()
        self._require_session()
        try:
            await self._client.like(user_id)
            payload = await self._client.get_user(user_id)
        except HappnApiError as exc:
            if not exc.is_not_authorized:
                raise
            await self.on_not_authorized_error()

        user = payload["data"]
        if user.get("my_relation") != MUTUAL_MATCH_RELATION:
            logger.debug("Liked happn user %s, no match yet", user_id)
            return None
        logger.info("Liked happn user %s: mutual match", user_id)
        return _normalize(user, data=user)

    async def get_user(self, user_id: str) -> Recommendation:
        if not user_id:
            raise InvalidArgumentError()
        self._require_session()
        try:
            payload = await self._client.get_user(user_id)
        except HappnApiError as exc:
            if not exc.is_not_authorized:
                raise
            await self.on_not_authorized_error()

        user = payload["data"]
        return _normalize(user, data=user)

    async def on_not_authorized_error(self) -> NoReturn:
        self._session.clear()
        await self._policy.on_not_authorized_error(self.name)

    def _require_session(self) -> None:
        if not self._session.is_authorized:
            raise NotAuthorizedError()


def _normalize(profile: dict[str, Any], *, data: dict[str, Any]) -> Recommendation:
    """Build a Recommendation from a happn user object (notifier or profile)."""
    return Recommendation(
        channel=CHANNEL_NAME,
        channel_id=str(profile["id"]),
        name=profile.get("first_name"),
        photos=[_photo(p) for p in profile.get("profiles") or []],
        data=data,
    )


def _photo(raw: dict[str, Any]) -> Photo:
    return Photo(
        url=raw.get("url"),
        id=str(raw["id"]) if raw.get("id") is not None else None,
    )


def _is_newer(item: dict[str, Any], cursor: datetime | None) -> bool:
    if cursor is None:
        return True
    return _parse_timestamp(item["creation_date"]) > _as_utc(cursor)


def _parse_timestamp(value: str) -> datetime:
    return _as_utc(datetime.fromisoformat(value))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
