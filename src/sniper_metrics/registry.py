"""Custom graphs and plotters that host features register for reporting."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Protocol

DEFAULT_COLUMN_NAME = "Default"


class PlotterLike(Protocol):
    """One named, integer-valued data source within a graph."""

    column_name: str

    def value(self) -> int:
        """Return the current value. Called from the reporting thread."""

    def reset(self) -> None:
        """Optional; called after the collector reports the first update of the hour."""


class Plotter:
    """Base plotter; subclasses override :meth:`value` and optionally :meth:`reset`."""

    def __init__(self, column_name: str = DEFAULT_COLUMN_NAME) -> None:
        if not column_name:
            raise ValueError("Plotter column name cannot be empty")
        self.column_name = column_name

    def value(self) -> int:
        raise NotImplementedError

    def reset(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(column_name={self.column_name!r})"


class CallbackPlotter(Plotter):
    """Plotter backed by host-supplied callables."""

    def __init__(
        self,
        column_name: str,
        provider: Callable[[], int],
        *,
        on_reset: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(column_name)
        self._provider = provider
        self._on_reset = on_reset

    def value(self) -> int:
        return self._provider()

    def reset(self) -> None:
        if self._on_reset is not None:
            self._on_reset()


class Graph:
    """A named group of plotters, keyed by column name.

    Equality and hashing use the name only, so two graphs with the same name
    are the same graph.
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("Graph name cannot be empty")
        self._name = name
        self._plotters: dict[str, PlotterLike] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def add_plotter(self, plotter: PlotterLike) -> None:
        """Add ``plotter`` unless a plotter with its column name already exists."""
        if plotter is None:
            raise ValueError("Plotter cannot be None")
        with self._lock:
            self._plotters.setdefault(plotter.column_name, plotter)

    def remove_plotter(self, plotter: PlotterLike | str) -> None:
        column_name = plotter if isinstance(plotter, str) else plotter.column_name
        with self._lock:
            self._plotters.pop(column_name, None)

    def plotters(self) -> tuple[PlotterLike, ...]:
        """Return a point-in-time copy of the plotters in insertion order."""
        with self._lock:
            return tuple(self._plotters.values())

    def on_opt_out(self) -> None:
        """Called when the operator opts out while reporting is running."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return self._name == other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __repr__(self) -> str:
        return f"Graph(name={self._name!r})"


@dataclass(slots=True, frozen=True)
class GraphSnapshot:
    """Values read from one graph during a reporting cycle."""

    name: str
    values: tuple[tuple[str, int], ...]


class MetricsRegistry:
    """Thread-safe set of graphs, keyed by name."""

    def __init__(self) -> None:
        self._graphs: dict[str, Graph] = {}
        self._lock = threading.Lock()

    def create_graph(self, name: str) -> Graph:
        """Return the graph called ``name``, creating and registering it if needed."""
        if not name:
            raise ValueError("Graph name cannot be empty")
        with self._lock:
            graph = self._graphs.get(name)
            if graph is None:
                graph = Graph(name)
                self._graphs[name] = graph
            return graph

    def add_graph(self, graph: Graph) -> Graph:
        """Register ``graph``; returns the instance kept under its name."""
        if graph is None:
            raise ValueError("Graph cannot be None")
        with self._lock:
            return self._graphs.setdefault(graph.name, graph)

    def get_graph(self, name: str) -> Graph | None:
        with self._lock:
            return self._graphs.get(name)

    def graphs(self) -> tuple[Graph, ...]:
        with self._lock:
            return tuple(self._graphs.values())

    def snapshot(self) -> tuple[GraphSnapshot, ...]:
        """Invoke every plotter once and return the values per graph.

        Collections are copied under their locks; plotter values are read
        afterwards so slow providers never block registration.
        """
        snapshots: list[GraphSnapshot] = []
        for graph in self.graphs():
            values = tuple((plotter.column_name, int(plotter.value())) for plotter in graph.plotters())
            snapshots.append(GraphSnapshot(name=graph.name, values=values))
        return tuple(snapshots)

    def reset_all(self) -> None:
        for graph in self.graphs():
            for plotter in graph.plotters():
                reset = getattr(plotter, "reset", None)
                if reset is not None:
                    reset()

    def notify_opt_out(self) -> None:
        for graph in self.graphs():
            graph.on_opt_out()

    def __len__(self) -> int:
        with self._lock:
            return len(self._graphs)
