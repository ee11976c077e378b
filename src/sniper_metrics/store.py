"""Properties-file backed persistence for the metrics guid and opt-out flags."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

from sniper_metrics.errors import StorageError

OPT_OUT_KEY = "opt-out"
GUID_KEY = "guid"
DEBUG_KEY = "debug"
HEADER_COMMENT = "http://mcstats.org"


@dataclass(slots=True, frozen=True)
class MetricsConfig:
    """Persisted reporting identity and operator flags."""

    guid: str
    opt_out: bool = False
    debug: bool = False

    @classmethod
    def defaults(cls) -> MetricsConfig:
        return cls(guid=str(uuid.uuid4()))


def _parse_bool(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``key=value`` / ``key: value`` lines, skipping ``#`` and ``!`` comments."""
    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue
        separators = [index for index in (line.find("="), line.find(":")) if index >= 0]
        if not separators:
            values[line] = ""
            continue
        split_at = min(separators)
        values[line[:split_at].strip()] = line[split_at + 1 :].strip()
    return values


def render_properties(config: MetricsConfig) -> str:
    stamp = datetime.now(timezone.utc).strftime("%a %b %d %H:%M:%S %Z %Y")
    lines = [
        f"#{HEADER_COMMENT}",
        f"#{stamp}",
        f"{OPT_OUT_KEY}={str(config.opt_out).lower()}",
        f"{GUID_KEY}={config.guid}",
        f"{DEBUG_KEY}={str(config.debug).lower()}",
    ]
    return "\n".join(lines) + "\n"


class ConfigStore:
    """Loads and updates the metrics config file.

    The opt-out flag is always re-read from disk so an operator editing the file
    while the host runs takes effect at the next check. ``opt_out_lock`` is the
    lock the scheduler holds around its own opt-out read-then-act sequences.
    """

    def __init__(self, file_path: str | Path, *, logger: logging.Logger | None = None) -> None:
        self._path = Path(file_path)
        self._logger = logger or logging.getLogger("sniper_metrics.store")
        self.opt_out_lock = threading.RLock()
        self._config = self.load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def guid(self) -> str:
        return self._config.guid

    @property
    def debug(self) -> bool:
        return self._config.debug

    @property
    def config(self) -> MetricsConfig:
        return self._config

    def load(self) -> MetricsConfig:
        """Read the config file, creating it with defaults on first use."""
        if not self._path.exists():
            config = MetricsConfig.defaults()
            self._write(config)
            self._logger.info("metrics_config_created", extra={"path": str(self._path)})
            return config

        values = self._read_values()
        guid = values.get(GUID_KEY)
        config = MetricsConfig(
            guid=guid or str(uuid.uuid4()),
            opt_out=_parse_bool(values.get(OPT_OUT_KEY)),
            debug=_parse_bool(values.get(DEBUG_KEY)),
        )
        if not guid:
            self._write(config)
        return config

    def is_opt_out(self) -> bool:
        """Return the persisted opt-out flag; unreadable files count as opted out."""
        with self.opt_out_lock:
            try:
                values = self._read_values()
            except StorageError as exc:
                if self._config.debug:
                    self._logger.warning("metrics_config_unreadable", extra={"path": str(self._path), "error": str(exc)})
                return True

            self._config = replace(
                self._config,
                opt_out=_parse_bool(values.get(OPT_OUT_KEY)),
                debug=_parse_bool(values.get(DEBUG_KEY)),
            )
            return self._config.opt_out

    def set_opt_out(self, opt_out: bool) -> None:
        """Persist ``opt_out`` unless the file already holds that value."""
        with self.opt_out_lock:
            values = self._read_values()
            current = replace(
                self._config,
                opt_out=_parse_bool(values.get(OPT_OUT_KEY)),
                debug=_parse_bool(values.get(DEBUG_KEY)),
            )
            if current.opt_out == opt_out:
                self._config = current
                return

            updated = replace(current, opt_out=opt_out)
            self._write(updated)
            self._config = updated
            self._logger.info("metrics_opt_out_changed", extra={"opt_out": opt_out})

    def _read_values(self) -> dict[str, str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to read metrics config {self._path}: {exc}") from exc
        return parse_properties(text)

    def _write(self, config: MetricsConfig) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(render_properties(config), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to write metrics config {self._path}: {exc}") from exc
