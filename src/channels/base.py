"""Channel adapter interface and the shared authorization policy."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import NoReturn

from src.channels.store import ChannelStore
from src.core.errors import NotAuthorizedError
from src.core.schemas import ChannelRecord, Credentials, Recommendation, Update

logger = logging.getLogger(__name__)

AuthorizeFn = Callable[[ChannelRecord], Awaitable[Credentials]]


class ChannelAdapter(ABC):
    """Operations every dating-platform adapter exposes to the orchestrator."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique channel name (e.g. 'happn'), also the store key."""

    @abstractmethod
    async def authorize(self) -> None:
        """Resolve a platform session, reusing stored credentials if possible."""

    @abstractmethod
    async def get_recommendations(self) -> list[Recommendation]:
        """Return the platform's current candidates, in platform order."""

    @abstractmethod
    async def get_updates(self) -> list[Update]:
        """Return new matches since the last successful call."""

    @abstractmethod
    async def like(self, user_id: str) -> Recommendation | None:
        """Like a user. Returns the user only if the like produced a match."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Recommendation:
        """Fetch and normalize one user profile."""

    @abstractmethod
    async def on_not_authorized_error(self) -> NoReturn:
        """Drop the session after the platform rejected it, then recover."""


class AuthorizationPolicy:
    """Find-or-authorize and not-authorized recovery shared by all adapters.

    Credentials are persisted on the channel record so later runs reuse them
    without a token exchange. Recovery clears them and raises
    NotAuthorizedError; the next ``authorize()`` performs a fresh exchange.
    """

    def __init__(self, store: ChannelStore) -> None:
        self._store = store

    async def find_or_authorize_if_needed(
        self,
        record: ChannelRecord,
        authorize: AuthorizeFn,
    ) -> Credentials:
        if record.user_id and record.access_token:
            logger.debug("Reusing stored credentials for '%s'", record.name)
            return Credentials(user_id=record.user_id, token=record.access_token)

        if not record.facebook_access_token:
            msg = f"No Facebook access token stored for '{record.name}'"
            raise NotAuthorizedError(msg)

        logger.info("Authorizing '%s' with Facebook access token", record.name)
        credentials = await authorize(record)
        self._store.save(
            [record.name],
            user_id=credentials.user_id,
            access_token=credentials.token,
        )
        return credentials

    async def on_not_authorized_error(self, name: str) -> NoReturn:
        self._store.save([name], user_id=None, access_token=None)
        logger.warning("Session for '%s' was rejected; stored credentials cleared", name)
        msg = f"{name} session is no longer authorized"
        raise NotAuthorizedError(msg)
