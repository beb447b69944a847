"""JSON-over-HTTP transport with bearer authentication."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyride._constants import USER_AGENT
from pyride._redact import redact_for_log
from pyride.config import RideConfig
from pyride.exceptions import RideTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any: ...


class HttpTransport:
    """aiohttp transport that attaches the bearer token and decodes JSON replies."""

    def __init__(self, config: RideConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.access_token:
            headers["authorization"] = f"Bearer {self._config.access_token}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        ``204 No Content`` and empty bodies decode to ``None``. Any non-2xx
        status raises :class:`RideTransportError` carrying ``status_code``.
        """
        url = f"{self._config.base_url}{endpoint}"
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else None

        _logger.debug("%s %s body=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=self._headers(),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise RideTransportError(
                        f"HTTP {resp.status} from {method} {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except RideTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise RideTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise RideTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
