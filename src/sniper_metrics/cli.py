"""CLI-side handler wrappers over the metrics scheduler."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sniper_metrics.scheduler import MetricsScheduler


@dataclass(slots=True)
class MetricsStatus:
    """Operator-facing view of the persisted config and loop state."""

    plugin: str
    config_path: str
    guid: str
    opt_out: bool
    debug: bool
    state: str

    def as_dict(self) -> dict:
        return asdict(self)


class CliMetricsHandler:
    """Simple sync facade over the metrics scheduler."""

    def __init__(self, scheduler: MetricsScheduler, plugin_name: str) -> None:
        self._scheduler = scheduler
        self._plugin_name = plugin_name

    @property
    def scheduler(self) -> MetricsScheduler:
        return self._scheduler

    def status(self) -> MetricsStatus:
        opt_out = self._scheduler.is_opt_out()
        store = self._scheduler.store
        return MetricsStatus(
            plugin=self._plugin_name,
            config_path=str(store.path),
            guid=store.guid,
            opt_out=opt_out,
            debug=store.debug,
            state=self._scheduler.state.value,
        )

    def enable(self) -> MetricsStatus:
        """Clear the persisted opt-out flag without starting a loop in this process."""
        self._scheduler.store.set_opt_out(False)
        return self.status()

    def disable(self) -> MetricsStatus:
        self._scheduler.disable()
        return self.status()

    def preview(self, *, ping: bool = False) -> str:
        """Render the document the next cycle would send, without sending it."""
        return self._scheduler.render_report(ping=ping)
