"""Background reporting loop and the enable/disable state machine."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Protocol

from sniper_metrics.config import Settings, settings as default_settings
from sniper_metrics.host import ServerHost
from sniper_metrics.payload import PayloadBuilder, SystemInfo
from sniper_metrics.registry import Graph, MetricsRegistry
from sniper_metrics.store import ConfigStore
from sniper_metrics.transport import ReportResult, Transport


class SchedulerState(str, Enum):
    """Lifecycle states of the reporting loop."""

    STOPPED = "stopped"
    RUNNING = "running"


class ReportTransport(Protocol):
    """Delivery contract used by the scheduler."""

    def send(self, plugin_name: str, document: str, *, debug: bool = False) -> ReportResult:
        """Deliver one report and classify the collector reply."""


class _Worker:
    """Handle for one running loop thread and its stop signal."""

    def __init__(self, thread: threading.Thread, stop_event: threading.Event) -> None:
        self.thread = thread
        self.stop_event = stop_event


class MetricsScheduler:
    """Owns the reporting thread for one plugin.

    ``enable``/``disable`` and the loop's opt-out check all run under the
    config store's opt-out lock. The worker handle is only replaced under that
    lock, and the loop observes cancellation through its own ``Event``.
    """

    def __init__(
        self,
        plugin_name: str,
        plugin_version: str,
        host: ServerHost,
        *,
        config_path: str | Path | None = None,
        registry: MetricsRegistry | None = None,
        transport: ReportTransport | None = None,
        system: SystemInfo | None = None,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not plugin_name or not plugin_version:
            raise ValueError("Plugin name and version are required")

        self._settings = settings or default_settings
        self._plugin_name = plugin_name
        self._logger = logger or logging.getLogger("sniper_metrics.scheduler")
        self._store = ConfigStore(config_path or self._settings.config_path)
        self._registry = registry or MetricsRegistry()
        self._transport = transport or Transport(self._settings)
        self._builder = PayloadBuilder(self._store.guid, plugin_version, host, system)
        self._worker: _Worker | None = None

    @property
    def registry(self) -> MetricsRegistry:
        return self._registry

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def state(self) -> SchedulerState:
        with self._store.opt_out_lock:
            return SchedulerState.STOPPED if self._worker is None else SchedulerState.RUNNING

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    def create_graph(self, name: str) -> Graph:
        return self._registry.create_graph(name)

    def add_graph(self, graph: Graph) -> Graph:
        return self._registry.add_graph(graph)

    def is_opt_out(self) -> bool:
        return self._store.is_opt_out()

    def start(self) -> bool:
        """Start reporting; returns ``False`` when the operator has opted out."""
        with self._store.opt_out_lock:
            if self._store.is_opt_out():
                return False
            if self._worker is not None:
                return True

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="sniper-metrics-reporter",
                daemon=True,
            )
            self._worker = _Worker(thread, stop_event)
            thread.start()
            self._logger.info("metrics_started", extra={"plugin": self._plugin_name})
            return True

    def enable(self) -> None:
        """Clear the persisted opt-out flag and start reporting if stopped."""
        with self._store.opt_out_lock:
            if self._store.is_opt_out():
                self._store.set_opt_out(False)
            if self._worker is None:
                self.start()

    def disable(self) -> None:
        """Persist the opt-out flag and cancel the reporting loop."""
        with self._store.opt_out_lock:
            if not self._store.is_opt_out():
                self._store.set_opt_out(True)
            self._cancel_worker()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the loop for host shutdown without changing the opt-out flag."""
        with self._store.opt_out_lock:
            worker = self._cancel_worker()
        if worker is not None and worker.thread is not threading.current_thread():
            worker.thread.join(timeout)

    def _cancel_worker(self) -> _Worker | None:
        worker = self._worker
        if worker is not None:
            worker.stop_event.set()
            self._worker = None
            self._logger.info("metrics_stopped", extra={"plugin": self._plugin_name})
        return worker

    def _run(self, stop_event: threading.Event) -> None:
        first_post = True
        next_post = 0.0
        while not stop_event.is_set():
            if next_post == 0.0 or time.monotonic() > next_post:
                with self._store.opt_out_lock:
                    if stop_event.is_set():
                        return
                    if self._store.is_opt_out():
                        self._registry.notify_opt_out()
                        self._cancel_worker()
                        return

                try:
                    self.post_report(ping=not first_post)
                    first_post = False
                except Exception as exc:  # noqa: BLE001 - reporting must never take down the host.
                    if self._store.debug:
                        self._logger.warning(
                            "metrics_report_failed",
                            extra={"plugin": self._plugin_name, "error": f"{type(exc).__name__}: {exc}"},
                        )
                next_post = time.monotonic() + self._settings.ping_interval_seconds

            stop_event.wait(self._settings.tick_seconds)

    def render_report(self, *, ping: bool) -> str:
        return self._builder.build(self._registry.snapshot(), ping=ping)

    def post_report(self, *, ping: bool) -> ReportResult:
        """Run one build-and-send cycle on the calling thread."""
        document = self.render_report(ping=ping)
        result = self._transport.send(self._plugin_name, document, debug=self._store.debug)
        if result == ReportResult.FIRST_OF_HOUR:
            self._registry.reset_all()
        return result
