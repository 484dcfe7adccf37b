"""Routing table of the network layer: a hash table from destination to next hop."""

from __future__ import annotations

from typing import Iterable

from .constants import MAX_ROUTINGTABLE_SLOTS
from .topology import Topology


def make_hash(node_id: int) -> int:
    """Return the slot number for a destination node ID."""
    return node_id % MAX_ROUTINGTABLE_SLOTS


class RoutingTable:
    """Destination node ID to next-hop node ID, kept in MAX_ROUTINGTABLE_SLOTS slots.

    Each slot keeps its entries in insertion order.
    """

    def __init__(self, neighbor_ids: Iterable[int] = ()) -> None:
        self._slots: list[dict[int, int]] = [{} for _ in range(MAX_ROUTINGTABLE_SLOTS)]
        for neighbor in neighbor_ids:
            self.set_next_node(neighbor, neighbor)

    @classmethod
    def from_topology(cls, topology: Topology) -> "RoutingTable":
        """Build a table routing every direct neighbour to itself."""
        return cls(topology.neighbor_ids())

    def set_next_node(self, dest_node_id: int, next_node_id: int) -> None:
        """Add or update the route to a destination."""
        self._slots[make_hash(dest_node_id)][dest_node_id] = next_node_id

    def get_next_node(self, dest_node_id: int) -> int:
        """Return the next hop to a destination; KeyError if there is no route."""
        slot = self._slots[make_hash(dest_node_id)]
        try:
            return slot[dest_node_id]
        except KeyError:
            raise KeyError(f"no route to node {dest_node_id}") from None

    def entries(self) -> list[tuple[int, int]]:
        """All (destination, next hop) pairs in slot order."""
        return [pair for slot in self._slots for pair in slot.items()]

    def format(self) -> str:
        lines = ["-------------routing table------------"]
        for slot in self._slots:
            if not slot:
                lines.append("NULL")
            else:
                lines.append(
                    "  ||  ".join(f"dest {dest} next {nxt}" for dest, nxt in slot.items()) + " "
                )
        lines.append("--------------------------------------")
        return "\n".join(lines) + "\n"