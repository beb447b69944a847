"""Custom exception hierarchy for pyride."""

from __future__ import annotations


class RideError(Exception):
    """Base exception for all pyride errors."""


class RideConfigError(RideError):
    """Invalid or missing configuration."""


class RideTransportError(RideError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FetchError(RideError):
    """Snapshot or roster load failed.

    Non-fatal: the roster stays empty (first load) or stale (reload).
    """


class WriteError(RideError):
    """Persisting the user's own location failed.

    The optimistic local update is intentionally left in place.
    """


class GeolocationError(RideError):
    """The device position source was denied or is unavailable."""


class ChannelError(RideError):
    """Realtime channel could not be (re)established.

    Transient disconnects are handled by automatic reconnect and re-join;
    this is only raised/surfaced after repeated reconnect failures.
    """
