"""Domain exceptions for connection management and sync."""


class NotConnectedError(Exception):
    """The user has no active Spotify connection; they must reconnect."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"No active Spotify connection for user_id={user_id}")


class MalformedEntityError(ValueError):
    """A provider payload is missing fields the catalog requires."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class InvalidStateError(Exception):
    """OAuth state parameter validation failed (CSRF protection)."""


class ConnectError(Exception):
    """Linking a Spotify account failed after the user granted access."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Could not connect Spotify account: {detail}")


class InvalidIdentityError(Exception):
    """The identity provider rejected the sign-in assertion."""
