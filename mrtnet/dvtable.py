"""Distance vector table kept by the network layer's routing protocol."""

from __future__ import annotations

from typing import Callable, Iterable

from .constants import INFINITE_COST
from .topology import Topology


class DistanceVectorTable:
    """One distance vector per neighbour and one for this node.

    This node's vector starts from direct link costs; the neighbours'
    vectors start at INFINITE_COST everywhere.
    """

    def __init__(
        self,
        my_node_id: int,
        neighbor_ids: Iterable[int],
        node_ids: Iterable[int],
        cost: Callable[[int, int], int],
    ) -> None:
        self.my_node_id = my_node_id
        nodes = list(node_ids)
        self._rows: dict[int, dict[int, int]] = {}
        for neighbor in neighbor_ids:
            self._rows[neighbor] = {node: INFINITE_COST for node in nodes}
        self._rows[my_node_id] = {node: cost(node, my_node_id) for node in nodes}

    @classmethod
    def from_topology(cls, topology: Topology) -> "DistanceVectorTable":
        return cls(
            topology.my_node_id(),
            topology.neighbor_ids(),
            topology.node_ids(),
            topology.cost,
        )

    def set_cost(self, from_node_id: int, to_node_id: int, cost: int) -> None:
        """Set a cost; KeyError if either node is not in the table."""
        row = self._rows.get(from_node_id)
        if row is None or to_node_id not in row:
            raise KeyError(f"no entry from {from_node_id} to {to_node_id}")
        row[to_node_id] = cost

    def get_cost(self, from_node_id: int, to_node_id: int) -> int:
        """Return a cost, or INFINITE_COST if either node is not in the table."""
        return self._rows.get(from_node_id, {}).get(to_node_id, INFINITE_COST)

    def vector(self, node_id: int) -> dict[int, int]:
        """A copy of one source node's distance vector."""
        return dict(self._rows[node_id])

    def format(self) -> str:
        lines = ["-------------dv table-------------"]
        for src, row in self._rows.items():
            lines.append(f"src {src}:")
            lines.extend(f"\tdest {dest} {cost}" for dest, cost in row.items())
        lines.append("----------------------------------")
        return "\n".join(lines) + "\n"