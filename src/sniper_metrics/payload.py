"""Rendering of one reporting cycle into the collector's JSON document."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from typing import Union

from sniper_metrics.host import ServerHost
from sniper_metrics.registry import GraphSnapshot

JsonValue = Union[int, str, "JsonObjectWriter"]

_SIMPLE_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
}


def escape_json_string(text: str) -> str:
    """Return ``text`` as a quoted JSON string literal."""
    parts = ['"']
    for char in text:
        escaped = _SIMPLE_ESCAPES.get(char)
        if escaped is not None:
            parts.append(escaped)
        elif char < " ":
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    parts.append('"')
    return "".join(parts)


class JsonObjectWriter:
    """Ordered JSON object builder.

    Integers are emitted as raw numerals and strings are always quoted, so a
    version string such as ``"1.0"`` never turns into a number.
    """

    def __init__(self) -> None:
        self._fields: list[tuple[str, JsonValue]] = []

    def add_string(self, key: str, value: str) -> JsonObjectWriter:
        self._fields.append((key, str(value)))
        return self

    def add_number(self, key: str, value: int) -> JsonObjectWriter:
        if isinstance(value, bool):
            value = int(value)
        self._fields.append((key, int(value)))
        return self

    def add_object(self, key: str, value: JsonObjectWriter) -> JsonObjectWriter:
        self._fields.append((key, value))
        return self

    def render(self) -> str:
        rendered = []
        for key, value in self._fields:
            if isinstance(value, JsonObjectWriter):
                text = value.render()
            elif isinstance(value, int):
                text = str(value)
            else:
                text = escape_json_string(value)
            rendered.append(f"{escape_json_string(key)}:{text}")
        return "{" + ",".join(rendered) + "}"

    def __len__(self) -> int:
        return len(self._fields)


def normalize_arch(arch: str) -> str:
    return "x86_64" if arch.lower() == "amd64" else arch


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Operating system and runtime facts reported with every cycle."""

    os_name: str
    os_arch: str
    os_version: str
    cores: int
    runtime_version: str

    @classmethod
    def detect(cls) -> SystemInfo:
        return cls(
            os_name=platform.system(),
            os_arch=platform.machine(),
            os_version=platform.release(),
            cores=os.cpu_count() or 1,
            runtime_version=platform.python_version(),
        )


class PayloadBuilder:
    """Builds the report document for a plugin."""

    def __init__(self, guid: str, plugin_version: str, host: ServerHost, system: SystemInfo | None = None) -> None:
        self._guid = guid
        self._plugin_version = plugin_version
        self._host = host
        self._system = system or SystemInfo.detect()

    def build(self, graphs: tuple[GraphSnapshot, ...] = (), *, ping: bool = False) -> str:
        writer = JsonObjectWriter()
        writer.add_string("guid", self._guid)
        writer.add_string("plugin_version", self._plugin_version)
        writer.add_string("server_version", self._host.server_version())
        writer.add_number("players_online", self._host.players_online())
        writer.add_string("osname", self._system.os_name)
        writer.add_string("osarch", normalize_arch(self._system.os_arch))
        writer.add_string("osversion", self._system.os_version)
        writer.add_number("cores", self._system.cores)
        # collector schema field name for the runtime version
        writer.add_string("java_version", self._system.runtime_version)
        if ping:
            writer.add_number("ping", 1)

        if graphs:
            graphs_writer = JsonObjectWriter()
            for graph in graphs:
                columns = JsonObjectWriter()
                for column_name, value in graph.values:
                    columns.add_number(column_name, value)
                graphs_writer.add_object(graph.name, columns)
            writer.add_object("graphs", graphs_writer)

        return writer.render()
