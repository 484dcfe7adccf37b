"""Parsing of the overlay topology file and node-ID lookups."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .constants import INFINITE_COST, TOPOLOGY_FILE


@dataclass(frozen=True)
class Link:
    """A direct link between two hosts with its cost."""

    host1: str
    host2: str
    cost: int


def node_id_from_ip(address: str) -> int:
    """Return the node ID of an IPv4 address: the number after its last dot."""
    tail = address.rsplit(".", 1)[-1]
    digits = ""
    for ch in tail.strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else 0


def _parse_c_int(token: str) -> int:
    sign = -1 if token.startswith("-") else 1
    body = token.lstrip("+-")
    lowered = body.lower()
    if lowered.startswith("0x"):
        return sign * int(body[2:], 16)
    if len(body) > 1 and body.startswith("0"):
        return sign * int(body[1:], 8)
    return sign * int(body, 10)


def parse_topology(text: str) -> list[Link]:
    """Parse whitespace-separated "host1 host2 cost" triples."""
    tokens = text.split()
    if len(tokens) % 3:
        raise ValueError("topology data is not made of host/host/cost triples")
    links = []
    for host1, host2, cost in zip(tokens[0::3], tokens[1::3], tokens[2::3]):
        try:
            value = _parse_c_int(cost)
        except ValueError as exc:
            raise ValueError(f"bad link cost {cost!r}") from exc
        links.append(Link(host1, host2, value))
    return links


class Topology:
    """The overlay topology as seen from one node."""

    def __init__(
        self,
        path: str | Path = TOPOLOGY_FILE,
        hostname: str | None = None,
        resolver: Callable[[str], str] | None = None,
    ) -> None:
        self.path = Path(path)
        self.hostname = hostname if hostname is not None else socket.gethostname()
        self._resolver = resolver if resolver is not None else socket.gethostbyname
        self._links = parse_topology(self.path.read_text())

    def node_id_from_name(self, hostname: str) -> int:
        """Resolve a host name and return its node ID."""
        try:
            address = self._resolver(hostname)
        except OSError as exc:
            raise LookupError(f"unknown host {hostname!r}") from exc
        return node_id_from_ip(address)

    def my_node_id(self) -> int:
        return self.node_id_from_name(self.hostname)

    def links(self) -> list[Link]:
        return list(self._links)

    def _link_ids(self):
        for link in self._links:
            yield (
                self.node_id_from_name(link.host1),
                self.node_id_from_name(link.host2),
                link.cost,
            )

    def neighbor_count(self) -> int:
        return len(self.neighbor_ids())

    def node_count(self) -> int:
        return len(self.node_ids())

    def node_ids(self) -> list[int]:
        """All node IDs in order of first appearance."""
        seen: dict[int, None] = {}
        for one, two, _ in self._link_ids():
            seen.setdefault(one)
            seen.setdefault(two)
        return list(seen)

    def neighbor_ids(self) -> list[int]:
        """IDs of nodes directly linked to this node, in file order."""
        me = self.my_node_id()
        neighbors = []
        for one, two, _ in self._link_ids():
            if one == me:
                neighbors.append(two)
            elif two == me:
                neighbors.append(one)
        return neighbors

    def cost(self, from_node_id: int, to_node_id: int) -> int:
        """Direct link cost between two nodes, or INFINITE_COST."""
        if from_node_id == to_node_id:
            return 0
        for one, two, cost in self._link_ids():
            if {from_node_id, to_node_id} == {one, two}:
                return cost
        return INFINITE_COST