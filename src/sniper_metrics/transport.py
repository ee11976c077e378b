"""HTTP delivery of report documents to the MCStats collector."""

from __future__ import annotations

import gzip
import logging
from enum import Enum
from urllib.parse import quote_plus

import httpx

from sniper_metrics.config import Settings, settings as default_settings
from sniper_metrics.errors import TransportError

FIRST_UPDATE_SENTINEL = "This is your first update this hour"


class ReportResult(str, Enum):
    """Successful outcomes of one report."""

    OK = "ok"
    FIRST_OF_HOUR = "first_of_hour"


def classify_response(line: str | None) -> ReportResult:
    """Map the collector's one-line reply to a result, raising on errors."""
    if line is None:
        raise TransportError("null")
    if line.startswith("ERR"):
        raise TransportError(line)
    if line.startswith("7"):
        raise TransportError(line[2:] if line.startswith("7,") else line[1:])
    if line == "1" or line == FIRST_UPDATE_SENTINEL:
        return ReportResult.FIRST_OF_HOUR
    return ReportResult.OK


def gzip_document(document: str) -> bytes:
    return gzip.compress(document.encode("utf-8"))


class Transport:
    """Sends one gzip-compressed report per call over a fresh connection."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        http_transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = config or default_settings
        self._http_transport = http_transport
        self._logger = logger or logging.getLogger("sniper_metrics.transport")

    def build_report_url(self, plugin_name: str) -> str:
        path = self._settings.report_path.format(plugin=quote_plus(plugin_name))
        return self._settings.base_url.rstrip("/") + path

    def build_headers(self, content_length: int) -> dict[str, str]:
        return {
            "User-Agent": f"MCStats/{self._settings.protocol_revision}",
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "Content-Length": str(content_length),
            "Accept": "application/json",
            "Connection": "close",
        }

    def send(self, plugin_name: str, document: str, *, debug: bool = False) -> ReportResult:
        """POST ``document`` for ``plugin_name`` and classify the reply."""
        url = self.build_report_url(plugin_name)
        compressed = gzip_document(document)
        if debug:
            self._logger.info(
                "metrics_request_prepared",
                extra={
                    "plugin": plugin_name,
                    "uncompressed": len(document.encode("utf-8")),
                    "compressed": len(compressed),
                },
            )

        try:
            with httpx.Client(transport=self._http_transport, trust_env=not self._settings.bypass_proxy) as client:
                response = client.post(url, content=compressed, headers=self.build_headers(len(compressed)))
                response.raise_for_status()
                body = response.text
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        lines = body.splitlines()
        return classify_response(lines[0] if lines else None)
