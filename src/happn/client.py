"""happn private API client over httpx.

Authenticates with the injected Session and reports failures as
HappnApiError carrying an ErrorKind, so callers branch on ``exc.kind``
rather than on exception classes. Transport failures (httpx.HTTPError)
propagate unchanged; no retries happen here.
"""

import logging
from enum import Enum
from types import TracebackType
from typing import Any

import httpx

from src.channels.session import Session
from src.core.config import HappnConfig

logger = logging.getLogger(__name__)

_TOKEN_PATH = "/connect/oauth/token"
_CROSSINGS_PATH = "/api/users/{me}/crossings"
_NOTIFICATIONS_PATH = "/api/users/{me}/notifications"
_ACCEPTED_PATH = "/api/users/{me}/accepted/{user_id}"
_USER_PATH = "/api/users/{user_id}"

# Notification type carrying new mutual matches.
MATCH_NOTIFICATION_TYPE = "471"

_NOTIFIER_FIELDS = (
    "id,type,is_read,creation_date,modification_date,"
    "notifier.fields(id,first_name,age,job,is_accepted,"
    "profiles.fields(id,url,width,height,mode))"
)
_USER_FIELDS = (
    "id,first_name,age,job,about,distance,my_relation,is_accepted,"
    "profiles.fields(id,url,width,height,mode)"
)

_NOT_AUTHORIZED_STATUSES = {401, 403}


class ErrorKind(str, Enum):
    NOT_AUTHORIZED = "not_authorized"
    REQUEST_FAILED = "request_failed"
    INVALID_RESPONSE = "invalid_response"


class HappnApiError(Exception):
    """A happn API call failed; ``kind`` says how."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def is_not_authorized(self) -> bool:
        return self.kind is ErrorKind.NOT_AUTHORIZED


class HappnClient:
    """Async happn API client bound to one Session.

    Usage::

        async with HappnClient(settings.happn, session) as client:
            await client.authorize(facebook_token)
            crossings = await client.get_recommendations(16)
    """

    def __init__(
        self,
        config: HappnConfig,
        session: Session,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            headers={"User-Agent": config.user_agent, "Accept": "application/json"},
            transport=transport,
        )

    @property
    def session(self) -> Session:
        return self._session

    async def __aenter__(self) -> "HappnClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def authorize(self, facebook_access_token: str) -> dict[str, Any]:
        """Exchange a Facebook access token for a happn session.

        Fills ``user_id``, ``access_token`` and ``refresh_token`` on the session.
        """
        payload = await self._request(
            "POST",
            _TOKEN_PATH,
            authenticated=False,
            data={
                "client_id": self._config.resolved_client_id(),
                "client_secret": self._config.resolved_client_secret(),
                "grant_type": "assertion",
                "assertion_type": "facebook_access_token",
                "assertion": facebook_access_token,
                "scope": "mobile_app",
            },
        )
        try:
            self._session.user_id = str(payload["user_id"])
            self._session.access_token = payload["access_token"]
        except KeyError as e:
            msg = f"Token response missing {e}"
            raise HappnApiError(ErrorKind.INVALID_RESPONSE, msg) from e
        self._session.refresh_token = payload.get("refresh_token")
        logger.info("Authorized happn user %s", self._session.user_id)
        return payload

    async def get_recommendations(self, limit: int) -> dict[str, Any]:
        """Fetch up to ``limit`` crossings: ``{"data": [...]}``."""
        return await self._request(
            "GET",
            _CROSSINGS_PATH.format(me=self._me()),
            params={"limit": limit, "fields": _NOTIFIER_FIELDS},
        )

    async def get_updates(self, limit: int, offset: int) -> dict[str, Any]:
        """Fetch one page of match notifications: ``{"matches": {"data": [...]}}``."""
        matches = await self._request(
            "GET",
            _NOTIFICATIONS_PATH.format(me=self._me()),
            params={
                "types": MATCH_NOTIFICATION_TYPE,
                "limit": limit,
                "offset": offset,
                "fields": _NOTIFIER_FIELDS,
            },
        )
        return {"matches": matches}

    async def like(self, user_id: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            _ACCEPTED_PATH.format(me=self._me(), user_id=user_id),
        )

    async def get_user(self, user_id: str) -> dict[str, Any]:
        """Fetch a user profile: ``{"data": {...}}``."""
        return await self._request(
            "GET",
            _USER_PATH.format(user_id=user_id),
            params={"fields": _USER_FIELDS},
        )

    def _me(self) -> str:
        if not self._session.user_id:
            msg = "No happn user id in session"
            raise HappnApiError(ErrorKind.NOT_AUTHORIZED, msg)
        return self._session.user_id

    async def _request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers: dict[str, str] = {}
        if authenticated:
            if not self._session.access_token:
                msg = "No happn access token in session"
                raise HappnApiError(ErrorKind.NOT_AUTHORIZED, msg)
            headers["Authorization"] = f'OAuth="{self._session.access_token}"'

        logger.debug("happn %s %s", method, path)
        resp = await self._http.request(method, path, headers=headers, **kwargs)

        if resp.status_code in _NOT_AUTHORIZED_STATUSES:
            msg = f"happn rejected session ({resp.status_code}) on {method} {path}"
            raise HappnApiError(ErrorKind.NOT_AUTHORIZED, msg, resp.status_code)
        if resp.status_code >= 400:
            msg = f"happn {method} {path} failed with status {resp.status_code}"
            raise HappnApiError(ErrorKind.REQUEST_FAILED, msg, resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            msg = f"happn {method} {path} returned a non-JSON body"
            raise HappnApiError(
                ErrorKind.INVALID_RESPONSE, msg, resp.status_code,
            ) from e
        if not isinstance(payload, dict):
            msg = f"happn {method} {path} returned {type(payload).__name__}, expected object"
            raise HappnApiError(ErrorKind.INVALID_RESPONSE, msg, resp.status_code)
        return payload
