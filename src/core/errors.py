"""Error kinds raised by channel adapters and their collaborators."""


class ChannelError(Exception):
    """Base class for channel errors."""


class NotAuthorizedError(ChannelError):
    """No usable platform session: never authorized, or rejected by the platform."""

    def __init__(self, message: str = "not authorized") -> None:
        super().__init__(message)


class InvalidArgumentError(ChannelError, ValueError):
    """A required argument was missing or empty."""

    def __init__(self, message: str = "invalid arguments") -> None:
        super().__init__(message)


class ChannelNotFoundError(ChannelError, LookupError):
    """No channel record exists under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Channel not found: {name}")
