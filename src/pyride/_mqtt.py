"""MQTT implementation of the realtime channel.

Topic layout per ride (``prefix`` from config, default ``rides``):

* ``{prefix}/{ride_code}/events``   server -> client, ``{"event": ..., "data": {...}}``
* ``{prefix}/{ride_code}/commands`` client -> server, same envelope
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyride._constants import EVENT_JOIN_RIDE, EVENT_LOCATION_UPDATE, EVENT_UPDATE_LOCATION
from pyride._redact import redact_for_log
from pyride.config import RideConfig
from pyride.exceptions import ChannelError
from pyride.realtime import ChannelEvent, ChannelEventKind, build_update_location_payload

_RECONNECT_MIN_DELAY_S = 1
_RECONNECT_MAX_DELAY_S = 30


def events_topic(prefix: str, ride_code: str) -> str:
    return f"{prefix}/{ride_code}/events"


def commands_topic(prefix: str, ride_code: str) -> str:
    return f"{prefix}/{ride_code}/commands"


def decode_envelope(payload: bytes) -> tuple[str, dict[str, Any]] | None:
    """Decode ``{"event": name, "data": {...}}``; ``None`` for anything else."""
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(parsed, dict):
        return None
    event_name = parsed.get("event")
    data = parsed.get("data")
    if not isinstance(event_name, str) or not isinstance(data, dict):
        return None
    return event_name, data


def encode_envelope(event_name: str, data: dict[str, Any]) -> str:
    return json.dumps({"event": event_name, "data": data}, separators=(",", ":"))


class MqttRealtimeChannel:
    """Threaded paho-mqtt channel that emits events onto an asyncio loop.

    paho handles reconnects in its network thread. Every successful
    (re)connect emits ``connected``; the owner is expected to re-join its
    ride from that callback because broker subscriptions are not assumed
    to survive a reconnect.
    """

    def __init__(
        self,
        config: RideConfig,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._on_event: Callable[[ChannelEvent], None] | None = None
        self._running = False
        self._consecutive_failures = 0
        self._failure_reported = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        client = self._client
        return client is not None and client.is_connected()

    def _emit(self, event: ChannelEvent) -> None:
        loop = self._loop
        callback = self._on_event
        if loop is None or callback is None or not self._running or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, event)

    def _record_failure(self, reason: Any) -> None:
        self._consecutive_failures += 1
        self._logger.warning(
            "MQTT connect failed (%d/%d): %s",
            self._consecutive_failures,
            self._config.max_reconnect_failures,
            reason,
        )
        if self._consecutive_failures >= self._config.max_reconnect_failures and not self._failure_reported:
            self._failure_reported = True
            error = ChannelError(
                f"Realtime channel failed to connect {self._consecutive_failures} times in a row: {reason}"
            )
            self._emit(ChannelEvent(kind=ChannelEventKind.ERROR, error=error))

    def start(self, on_event: Callable[[ChannelEvent], None]) -> None:
        """Begin connecting in the background. Must be called on the event loop."""
        self.stop()
        self._loop = asyncio.get_running_loop()
        self._on_event = on_event
        self._consecutive_failures = 0
        self._failure_reported = False

        self._logger.debug(
            "MQTT channel start requested host=%s port=%s tls=%s",
            self._config.mqtt_host,
            self._config.mqtt_port,
            self._config.mqtt_tls,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if self._config.mqtt_username:
            client.username_pw_set(self._config.mqtt_username, self._config.mqtt_password)
        if self._config.mqtt_tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=_RECONNECT_MIN_DELAY_S, max_delay=_RECONNECT_MAX_DELAY_S)

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._record_failure(reason_code)
                return
            self._consecutive_failures = 0
            self._failure_reported = False
            self._logger.debug("MQTT connected reason=%s", reason_code)
            self._emit(ChannelEvent(kind=ChannelEventKind.CONNECTED))

        def on_connect_fail(_c: mqtt.Client, _userdata: Any) -> None:
            self._record_failure("network error")

        def on_disconnect(
            _c: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                self._emit(ChannelEvent(kind=ChannelEventKind.DISCONNECTED))

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            decoded = decode_envelope(msg.payload)
            if decoded is None:
                self._logger.debug("Ignoring undecodable message on topic=%s", msg.topic)
                return
            event_name, data = decoded
            self._logger.debug("Received event=%s topic=%s data=%s", event_name, msg.topic, redact_for_log(data))
            if event_name == EVENT_LOCATION_UPDATE:
                self._emit(ChannelEvent(kind=ChannelEventKind.LOCATION_UPDATE, payload=data))

        client.on_connect = on_connect
        client.on_connect_fail = on_connect_fail
        client.on_disconnect = on_disconnect
        client.on_message = on_message

        self._client = client
        self._running = True
        client.connect_async(self._config.mqtt_host, self._config.mqtt_port, keepalive=self._config.mqtt_keepalive)
        client.loop_start()
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect and stop the network thread. Safe to call repeatedly."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._on_event = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _publish(self, ride_code: str, event_name: str, data: dict[str, Any]) -> None:
        client = self._client
        if client is None:
            raise ChannelError("Realtime channel is not started")
        topic = commands_topic(self._config.mqtt_topic_prefix, ride_code)
        info = client.publish(topic, encode_envelope(event_name, data), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            # Not connected; the next reconnect re-joins and later updates resend.
            self._logger.debug("MQTT publish event=%s deferred rc=%s", event_name, info.rc)

    def join_ride(self, ride_code: str) -> None:
        client = self._client
        if client is None:
            raise ChannelError("Realtime channel is not started")
        client.subscribe(events_topic(self._config.mqtt_topic_prefix, ride_code), qos=1)
        self._publish(ride_code, EVENT_JOIN_RIDE, {"ride_code": ride_code})
        self._logger.debug("Joined ride room code=%s", ride_code)

    def update_location(
        self,
        *,
        ride_code: str,
        user_id: int,
        lat: float,
        lon: float,
        observed_at: datetime,
    ) -> None:
        payload = build_update_location_payload(
            ride_code=ride_code,
            user_id=user_id,
            lat=lat,
            lon=lon,
            observed_at=observed_at,
        )
        self._publish(ride_code, EVENT_UPDATE_LOCATION, payload)
