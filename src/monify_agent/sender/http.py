"""HTTP sender: gzip-compressed JSON POST to the monify collector."""

from __future__ import annotations

import gzip
import json
import logging

import httpx

from .. import __version__
from ..config import ServerConfig
from ..errors import AuthenticationError, SendError
from ..models import MetricPayload, ServerResponse
from .base import Sender

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpSender(Sender):
    """Posts payloads to ``config.url`` with bearer-token authentication."""

    def __init__(self, config: ServerConfig, client: httpx.Client | None = None) -> None:
        self._config = config
        self._client = client or httpx.Client(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._owns_client = client is None
        logger.info("HttpSender initialized -> %s", config.url)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "User-Agent": f"monify/{__version__}",
            "X-Agent-Version": __version__,
        }
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers

    def send(self, payload: MetricPayload, timeout: float | None = None) -> ServerResponse:
        body = gzip.compress(json.dumps(payload.to_dict()).encode("utf-8"))
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = self._client.post(self._config.url, content=body, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise SendError(f"request failed: {exc}") from exc

        logger.debug("POST %s -> %d (%d bytes sent)", self._config.url, resp.status_code, len(body))

        if resp.status_code == 401:
            raise AuthenticationError("authentication failed: invalid or expired token")
        if resp.status_code == 400:
            raise SendError(f"bad request: {resp.text.strip()}")
        if resp.status_code == 429:
            raise SendError("rate limited")
        if not resp.is_success:
            raise SendError(f"unexpected status code: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            return ServerResponse()
        if not isinstance(data, dict):
            return ServerResponse()
        return ServerResponse.from_dict(data)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
        logger.info("HttpSender shut down")
