from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from sniper_metrics.config import Settings
from sniper_metrics.errors import StorageError, TransportError
from sniper_metrics.host import StaticServerHost
from sniper_metrics.payload import SystemInfo
from sniper_metrics.registry import Graph, Plotter
from sniper_metrics.scheduler import MetricsScheduler, SchedulerState
from sniper_metrics.transport import ReportResult

FAST = Settings(tick_seconds=0.01, ping_interval_seconds=0.05)
SYSTEM = SystemInfo(os_name="Linux", os_arch="x86_64", os_version="6.1", cores=2, runtime_version="3.12.1")


class RecordingTransport:
    def __init__(self, results: list[ReportResult | Exception] | None = None) -> None:
        self.results = list(results or [])
        self.documents: list[str] = []
        self.sent = threading.Event()
        self._lock = threading.Lock()

    def send(self, plugin_name: str, document: str, *, debug: bool = False) -> ReportResult:
        with self._lock:
            self.documents.append(document)
            outcome = self.results.pop(0) if self.results else ReportResult.OK
        self.sent.set()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class CountingPlotter(Plotter):
    def __init__(self) -> None:
        super().__init__("P")
        self.resets = 0

    def value(self) -> int:
        return 5

    def reset(self) -> None:
        self.resets += 1


class RecordingGraph(Graph):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.opted_out = threading.Event()

    def on_opt_out(self) -> None:
        self.opted_out.set()


def _scheduler(tmp_path: Path, transport: RecordingTransport, **kwargs) -> MetricsScheduler:
    return MetricsScheduler(
        "VoxelSniper",
        "5.0",
        StaticServerHost(version="1.20.1", players=3),
        config_path=tmp_path / "metrics" / "config.properties",
        transport=transport,
        system=SYSTEM,
        settings=FAST,
        **kwargs,
    )


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def _set_opt_out_on_disk(scheduler: MetricsScheduler, value: bool) -> None:
    path = scheduler.store.path
    text = path.read_text(encoding="utf-8")
    path.write_text(text.replace(f"opt-out={str(not value).lower()}", f"opt-out={str(value).lower()}"), encoding="utf-8")


def test_construction_requires_plugin_identity(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        MetricsScheduler("", "1.0", StaticServerHost(), config_path=tmp_path / "c.properties")


def test_construction_propagates_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(StorageError):
        MetricsScheduler("P", "1.0", StaticServerHost(), config_path=blocker / "config.properties")


def test_disable_is_visible_immediately(tmp_path: Path) -> None:
    scheduler = _scheduler(tmp_path, RecordingTransport())
    assert scheduler.start() is True

    scheduler.disable()

    assert scheduler.is_opt_out() is True
    assert scheduler.state == SchedulerState.STOPPED


def test_start_refuses_when_opted_out(tmp_path: Path) -> None:
    transport = RecordingTransport()
    scheduler = _scheduler(tmp_path, transport)
    _set_opt_out_on_disk(scheduler, True)

    assert scheduler.start() is False
    assert scheduler.state == SchedulerState.STOPPED
    assert transport.documents == []


def test_enable_clears_opt_out_and_starts_once(tmp_path: Path) -> None:
    transport = RecordingTransport()
    scheduler = _scheduler(tmp_path, transport)
    _set_opt_out_on_disk(scheduler, True)

    scheduler.enable()
    try:
        assert scheduler.is_opt_out() is False
        assert scheduler.is_running
        worker = scheduler._worker

        scheduler.enable()

        assert scheduler._worker is worker
    finally:
        scheduler.stop(timeout=1)


def test_first_post_then_pings(tmp_path: Path) -> None:
    transport = RecordingTransport()
    scheduler = _scheduler(tmp_path, transport)
    graph = scheduler.create_graph("G")
    graph.add_plotter(CountingPlotter())

    scheduler.start()
    try:
        assert _wait_for(lambda: len(transport.documents) >= 2)
    finally:
        scheduler.stop(timeout=1)

    first, second = (json.loads(document) for document in transport.documents[:2])
    assert "ping" not in first
    assert second["ping"] == 1
    assert transport.documents[0].endswith('"graphs":{"G":{"P":5}}}')


def test_first_of_hour_resets_plotters(tmp_path: Path) -> None:
    transport = RecordingTransport([ReportResult.FIRST_OF_HOUR])
    scheduler = _scheduler(tmp_path, transport)
    plotter = CountingPlotter()
    scheduler.create_graph("G").add_plotter(plotter)

    assert scheduler.post_report(ping=False) == ReportResult.FIRST_OF_HOUR
    assert plotter.resets == 1

    scheduler.post_report(ping=True)
    assert plotter.resets == 1


def test_transport_errors_do_not_stop_the_loop(tmp_path: Path) -> None:
    transport = RecordingTransport([TransportError("ERR:bad guid"), RuntimeError("unexpected")])
    scheduler = _scheduler(tmp_path, transport)

    scheduler.start()
    try:
        assert _wait_for(lambda: len(transport.documents) >= 4)
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=1)

    # failed cycles are retried as first posts
    pings = [json.loads(document).get("ping") for document in transport.documents[:4]]
    assert pings == [None, None, None, 1]


def test_opt_out_mid_loop_stops_and_notifies_graphs(tmp_path: Path) -> None:
    transport = RecordingTransport()
    scheduler = _scheduler(tmp_path, transport)
    graph = RecordingGraph("G")
    scheduler.add_graph(graph)

    scheduler.start()
    try:
        assert transport.sent.wait(1)
        _set_opt_out_on_disk(scheduler, True)

        assert graph.opted_out.wait(1)
        assert _wait_for(lambda: not scheduler.is_running)
    finally:
        scheduler.stop(timeout=1)

    sent = len(transport.documents)
    time.sleep(0.1)
    assert len(transport.documents) == sent


def test_disable_then_enable_restarts_reporting(tmp_path: Path) -> None:
    transport = RecordingTransport()
    scheduler = _scheduler(tmp_path, transport)

    scheduler.start()
    scheduler.disable()
    scheduler.enable()
    try:
        assert scheduler.is_running
        assert transport.sent.wait(1)
    finally:
        scheduler.stop(timeout=1)

    assert scheduler.is_opt_out() is False


def _write_config(tmp_path: Path, *, debug: bool) -> None:
    path = tmp_path / "metrics" / "config.properties"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"opt-out=false\nguid=abc-123\ndebug={str(debug).lower()}\n", encoding="utf-8")


def _slow_scheduler(tmp_path: Path, transport: RecordingTransport) -> MetricsScheduler:
    return MetricsScheduler(
        "VoxelSniper",
        "5.0",
        StaticServerHost(),
        config_path=tmp_path / "metrics" / "config.properties",
        transport=transport,
        system=SYSTEM,
        settings=Settings(tick_seconds=0.01, ping_interval_seconds=0.5),
    )


def test_failed_cycle_waits_full_interval(tmp_path: Path) -> None:
    transport = RecordingTransport([TransportError("ERR") for _ in range(10)])
    scheduler = _slow_scheduler(tmp_path, transport)

    scheduler.start()
    try:
        assert transport.sent.wait(1)
        time.sleep(0.3)
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=1)

    assert len(transport.documents) == 1


def test_cycle_failure_logged_when_debug_enabled(tmp_path: Path, caplog) -> None:
    caplog.set_level("WARNING", logger="sniper_metrics.scheduler")
    _write_config(tmp_path, debug=True)
    transport = RecordingTransport([TransportError("ERR:bad guid")])
    scheduler = _slow_scheduler(tmp_path, transport)

    scheduler.start()
    try:
        assert _wait_for(lambda: any(r.getMessage() == "metrics_report_failed" for r in caplog.records))
    finally:
        scheduler.stop(timeout=1)

    record = next(r for r in caplog.records if r.getMessage() == "metrics_report_failed")
    assert "ERR:bad guid" in record.error


def test_cycle_failure_silent_when_debug_disabled(tmp_path: Path, caplog) -> None:
    caplog.set_level("WARNING", logger="sniper_metrics.scheduler")
    _write_config(tmp_path, debug=False)
    transport = RecordingTransport([TransportError("ERR:bad guid")])
    scheduler = _slow_scheduler(tmp_path, transport)

    scheduler.start()
    try:
        assert transport.sent.wait(1)
        time.sleep(0.1)
    finally:
        scheduler.stop(timeout=1)

    assert not any(r.getMessage() == "metrics_report_failed" for r in caplog.records)
