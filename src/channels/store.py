"""Channel store: per-channel enablement, credentials, and activity cursor.

Backed by the ``channels`` SQLite table. The activity cursor is forward-only:
an older ``last_activity_date`` than the one stored is ignored.
"""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from src.core.config import ChannelDefaults
from src.core.db import get_channel, list_channels, upsert_channel
from src.core.errors import ChannelNotFoundError
from src.core.schemas import ChannelRecord

logger = logging.getLogger(__name__)


class ChannelStore:
    """Data-access object for channel records.

    Usage::

        store = ChannelStore(conn)
        record = store.find_by_name("happn")
        store.save(["happn"], last_activity_date=datetime.now(timezone.utc))
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        defaults: ChannelDefaults | None = None,
    ) -> None:
        self._conn = conn
        self._defaults = defaults or ChannelDefaults()

    def find_by_name(self, name: str) -> ChannelRecord:
        """Return the record for ``name``. Raises ChannelNotFoundError if absent."""
        row = get_channel(self._conn, name)
        if row is None:
            raise ChannelNotFoundError(name)
        return _row_to_record(row)

    def find_all(self) -> list[ChannelRecord]:
        return [_row_to_record(row) for row in list_channels(self._conn)]

    def ensure(self, name: str) -> ChannelRecord:
        """Return the record for ``name``, creating it with defaults if needed."""
        if get_channel(self._conn, name) is None:
            upsert_channel(self._conn, name, {
                "is_enabled": int(self._defaults.is_enabled),
                "updated_at": _utcnow().isoformat(),
            })
            logger.info("Created channel record '%s'", name)
        return self.find_by_name(name)

    def save(self, names: Iterable[str], **fields: Any) -> None:
        """Merge ``fields`` into each named record, creating missing ones.

        Passing None clears a field. ``last_activity_date`` never moves back.
        """
        for name in names:
            self.ensure(name)
            values = dict(fields)

            if "last_activity_date" in values:
                new_date = values["last_activity_date"]
                current = self.find_by_name(name).last_activity_date
                if (
                    new_date is not None
                    and current is not None
                    and _as_utc(new_date) <= current
                ):
                    logger.debug(
                        "Ignoring older activity cursor for '%s': %s <= %s",
                        name, new_date, current,
                    )
                    del values["last_activity_date"]

            values["updated_at"] = _utcnow()
            upsert_channel(self._conn, name, _to_columns(values))
            logger.debug("Saved channel '%s': %s", name, sorted(values))

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.save([name], is_enabled=enabled)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    columns: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, datetime):
            columns[key] = _as_utc(value).isoformat()
        elif isinstance(value, bool):
            columns[key] = int(value)
        else:
            columns[key] = value
    return columns


def _parse_date(value: str | None) -> datetime | None:
    if value is None:
        return None
    return _as_utc(datetime.fromisoformat(value))


def _row_to_record(row: sqlite3.Row) -> ChannelRecord:
    return ChannelRecord(
        name=row["name"],
        is_enabled=bool(row["is_enabled"]),
        user_id=row["user_id"],
        access_token=row["access_token"],
        facebook_access_token=row["facebook_access_token"],
        last_activity_date=_parse_date(row["last_activity_date"]),
        updated_at=_parse_date(row["updated_at"]),
    )
