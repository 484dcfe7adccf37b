"""Direct link costs from this node to each of its neighbours."""

from __future__ import annotations

from typing import Iterable

from .constants import INFINITE_COST
from .topology import Topology


class NeighborCostTable:
    """(neighbour node ID, direct link cost) pairs in topology-file order."""

    def __init__(self, costs: Iterable[tuple[int, int]] = ()) -> None:
        self.costs: list[tuple[int, int]] = [(int(n), int(c)) for n, c in costs]

    @classmethod
    def from_topology(cls, topology: Topology) -> "NeighborCostTable":
        """Build the table from the links that touch this node."""
        me = topology.my_node_id()
        costs = []
        for link in topology.links():
            one = topology.node_id_from_name(link.host1)
            two = topology.node_id_from_name(link.host2)
            if one == me:
                costs.append((two, link.cost))
            elif two == me:
                costs.append((one, link.cost))
        return cls(costs)

    def get_cost(self, node_id: int) -> int:
        """Direct link cost to a neighbour, or INFINITE_COST if it is not one."""
        return next((cost for nbr, cost in self.costs if nbr == node_id), INFINITE_COST)

    def format(self) -> str:
        lines = ["-------------nbrcost table------------"]
        lines.extend(f"nbr {nbr} cost {cost}" for nbr, cost in self.costs)
        lines.append("--------------------------------------")
        return "\n".join(lines) + "\n"