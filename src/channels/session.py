"""In-memory platform session shared by an adapter and its client."""

from pydantic import BaseModel


class Session(BaseModel):
    """Authorization state for the single account behind one adapter.

    Mutable: filled on authorization, cleared when the platform rejects it.
    """

    user_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_authorized(self) -> bool:
        return bool(self.access_token)

    def clear(self) -> None:
        self.user_id = None
        self.access_token = None
        self.refresh_token = None
