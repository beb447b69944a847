"""Client configuration for pyride."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any

from pyride.exceptions import RideConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


class UnknownParticipantPolicy(StrEnum):
    """What to do with a streamed update for a ``user_id`` not in the roster."""

    DROP = "drop"
    PLACEHOLDER = "placeholder"


class EarlyUpdatePolicy(StrEnum):
    """What to do with streamed updates that arrive before the snapshot."""

    DROP = "drop"
    BUFFER = "buffer"


@dataclasses.dataclass(frozen=True)
class RideConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        REST API base URL (without trailing slash).
    access_token : str or None
        Bearer token for authenticated endpoints. When ``None`` the
        client behaves as an anonymous viewer and does not look up its
        own participation record.
    request_timeout : float
        Total HTTP request timeout in seconds.
    realtime_enabled : bool
        Open the realtime channel when a ride view is opened.
    mqtt_host : str
        Broker host for the realtime channel.
    mqtt_port : int
        Broker port.
    mqtt_tls : bool
        Use TLS for the broker connection.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_username, mqtt_password : str or None
        Optional broker credentials.
    mqtt_topic_prefix : str
        Prefix for per-ride topics (``{prefix}/{ride_code}/events``).
    max_reconnect_failures : int
        Consecutive failed (re)connects before a ``ChannelError`` is surfaced.
    unknown_participant_policy : UnknownParticipantPolicy
        ``drop`` (default) ignores updates for unknown users,
        ``placeholder`` appends a synthetic participant.
    early_update_policy : EarlyUpdatePolicy
        ``drop`` (default) or ``buffer`` streamed updates that arrive
        before the snapshot has completed.
    early_update_buffer_size : int
        Maximum number of buffered early updates (oldest evicted first).
    fit_margin_px : int
        Uniform inset applied to every fit-bounds intent.
    single_point_zoom : int
        Zoom level used when the region to fit is a single point.
    """

    base_url: str = "http://localhost:8000/api"
    access_token: str | None = None
    request_timeout: float = 10.0
    realtime_enabled: bool = True
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_topic_prefix: str = "rides"
    max_reconnect_failures: int = 5
    unknown_participant_policy: UnknownParticipantPolicy = UnknownParticipantPolicy.DROP
    early_update_policy: EarlyUpdatePolicy = EarlyUpdatePolicy.DROP
    early_update_buffer_size: int = 256
    fit_margin_px: int = 50
    single_point_zoom: int = 15

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise RideConfigError("base_url must be non-empty")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.request_timeout <= 0:
            raise RideConfigError("request_timeout must be positive")
        if self.max_reconnect_failures < 1:
            raise RideConfigError("max_reconnect_failures must be at least 1")
        if self.early_update_buffer_size < 1:
            raise RideConfigError("early_update_buffer_size must be at least 1")
        if self.fit_margin_px < 0:
            raise RideConfigError("fit_margin_px must not be negative")
        try:
            object.__setattr__(
                self,
                "unknown_participant_policy",
                UnknownParticipantPolicy(self.unknown_participant_policy),
            )
            object.__setattr__(self, "early_update_policy", EarlyUpdatePolicy(self.early_update_policy))
        except ValueError as exc:
            raise RideConfigError(str(exc)) from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> RideConfig:
        """Create configuration from ``PYRIDE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "PYRIDE_BASE_URL": "base_url",
            "PYRIDE_ACCESS_TOKEN": "access_token",
            "PYRIDE_MQTT_HOST": "mqtt_host",
            "PYRIDE_MQTT_USERNAME": "mqtt_username",
            "PYRIDE_MQTT_PASSWORD": "mqtt_password",
            "PYRIDE_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
            "PYRIDE_UNKNOWN_PARTICIPANT_POLICY": "unknown_participant_policy",
            "PYRIDE_EARLY_UPDATE_POLICY": "early_update_policy",
        }
        _ENV_INT_MAP = {
            "PYRIDE_MQTT_PORT": "mqtt_port",
            "PYRIDE_MQTT_KEEPALIVE": "mqtt_keepalive",
            "PYRIDE_MAX_RECONNECT_FAILURES": "max_reconnect_failures",
            "PYRIDE_EARLY_UPDATE_BUFFER_SIZE": "early_update_buffer_size",
            "PYRIDE_FIT_MARGIN_PX": "fit_margin_px",
            "PYRIDE_SINGLE_POINT_ZOOM": "single_point_zoom",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise RideConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        timeout_env = env.get("PYRIDE_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            try:
                config_kwargs["request_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise RideConfigError(f"PYRIDE_REQUEST_TIMEOUT must be a number, got {timeout_env!r}") from exc

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("PYRIDE_REALTIME_ENABLED"), True)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("PYRIDE_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
