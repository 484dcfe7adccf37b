"""The overlay's table of directly linked neighbours and their connections."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

from .topology import Topology

log = logging.getLogger(__name__)


@dataclass
class NeighborEntry:
    """A neighbour: its node ID, IP address and connection, if any."""

    node_id: int
    ip: str
    conn: Any = None


class NeighborTable:
    """Neighbours of this node in topology-file order."""

    def __init__(self, entries: Iterable[NeighborEntry] = ()) -> None:
        self._entries = list(entries)

    @classmethod
    def from_topology(
        cls, topology: Topology, resolve: Callable[[str], str] | None = None
    ) -> "NeighborTable":
        """Build the table from the links that touch this node."""
        resolve = resolve if resolve is not None else socket.gethostbyname
        me = topology.my_node_id()
        entries = []
        for link in topology.links():
            one = topology.node_id_from_name(link.host1)
            two = topology.node_id_from_name(link.host2)
            if one == me:
                entries.append(NeighborEntry(two, resolve(link.host2)))
            elif two == me:
                entries.append(NeighborEntry(one, resolve(link.host1)))
        return cls(entries)

    def get(self, node_id: int) -> NeighborEntry | None:
        return next((e for e in self._entries if e.node_id == node_id), None)

    def add_conn(self, node_id: int, conn) -> NeighborEntry:
        """Attach a connection to a neighbour; KeyError if it is not a neighbour."""
        entry = self.get(node_id)
        if entry is None:
            raise KeyError(f"node {node_id} is not a neighbour")
        entry.conn = conn
        log.debug("added connection for node %d", node_id)
        return entry

    def close_all(self) -> None:
        """Close every neighbour connection."""
        for entry in self._entries:
            if entry.conn is not None:
                try:
                    entry.conn.close()
                except OSError as exc:
                    log.warning("closing connection to %d failed: %s", entry.node_id, exc)
                entry.conn = None

    def __iter__(self) -> Iterator[NeighborEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)