"""Boundary for the host application that supplies server-level report values."""

from dataclasses import dataclass
from typing import Protocol


class ServerHost(Protocol):
    """Host-supplied values included in every report."""

    def server_version(self) -> str:
        """Return the full server version string."""

    def players_online(self) -> int:
        """Return the number of players currently online."""


@dataclass(slots=True)
class StaticServerHost:
    """Fixed host values, used by the CLI and tests."""

    version: str = "unknown"
    players: int = 0

    def server_version(self) -> str:
        return self.version

    def players_online(self) -> int:
        return self.players
