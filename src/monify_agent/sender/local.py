"""Local file sender – appends payloads to JSONL files."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from ..config import LocalSenderConfig
from ..errors import SendError
from ..models import MetricPayload, ServerResponse
from .base import Sender

logger = logging.getLogger(__name__)


class LocalSender(Sender):
    """Writes one payload per line to JSONL files on disk.

    One file per day is created inside the configured *output_dir*. There is
    no server on the other end, so every send answers with an empty
    successful response.
    """

    def __init__(self, config: LocalSenderConfig) -> None:
        self._config = config
        self._output_dir = Path(config.output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._fh = None
        self._current_date: str | None = None
        logger.info("LocalSender initialized -> %s", self._output_dir)

    def _ensure_file(self) -> None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        if self._current_date != today or self._fh is None:
            if self._fh is not None:
                self._fh.close()
            filepath = self._output_dir / f"payloads-{today}.jsonl"
            self._fh = open(filepath, "a", encoding="utf-8")  # noqa: SIM115
            self._current_date = today

    def send(self, payload: MetricPayload, timeout: float | None = None) -> ServerResponse:
        line = json.dumps(payload.to_dict())
        with self._lock:
            try:
                self._ensure_file()
                assert self._fh is not None
                self._fh.write(line + "\n")
                self._fh.flush()
            except OSError as exc:
                raise SendError(f"writing payload failed: {exc}") from exc
        return ServerResponse()

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
        logger.info("LocalSender shut down")
