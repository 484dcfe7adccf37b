import pytest

from mrtnet.constants import MAX_ROUTINGTABLE_SLOTS
from mrtnet.routing_table import RoutingTable, make_hash
from mrtnet.topology import Topology


@pytest.mark.parametrize("node_id", [0, 1, 7, 9, 10, 23, 9999])
def test_make_hash_in_range_and_periodic(node_id):
    slot = make_hash(node_id)
    assert 0 <= slot < MAX_ROUTINGTABLE_SLOTS
    assert make_hash(node_id + MAX_ROUTINGTABLE_SLOTS) == slot


def test_neighbours_route_to_themselves():
    table = RoutingTable([1, 11, 2])
    assert table.get_next_node(1) == 1
    assert table.get_next_node(11) == 11
    assert table.get_next_node(2) == 2


def test_entries_in_slot_order():
    table = RoutingTable([2, 1, 11])
    assert table.entries() == [(1, 1), (11, 11), (2, 2)]


def test_set_next_node_adds_route():
    table = RoutingTable([1])
    table.set_next_node(21, 1)
    assert table.get_next_node(21) == 1
    assert (21, 1) in table.entries()


def test_set_next_node_updates_existing():
    table = RoutingTable([1, 11])
    table.set_next_node(11, 1)
    assert table.get_next_node(11) == 1
    assert len(table.entries()) == 2


def test_missing_route_raises():
    table = RoutingTable([1])
    with pytest.raises(KeyError):
        table.get_next_node(11)


def test_empty_table_has_no_entries():
    table = RoutingTable()
    assert table.entries() == []
    with pytest.raises(KeyError):
        table.get_next_node(0)


def test_format_layout():
    table = RoutingTable([1, 11])
    lines = table.format().splitlines()
    assert lines[0] == "-------------routing table------------"
    assert lines[-1] == "--------------------------------------"
    assert len(lines) == MAX_ROUTINGTABLE_SLOTS + 2
    assert lines[1] == "NULL"
    assert lines[1 + make_hash(1)] == "dest 1 next 1  ||  dest 11 next 11 "
    assert lines.count("NULL") == MAX_ROUTINGTABLE_SLOTS - 1


def test_from_topology(tmp_path):
    path = tmp_path / "topology.dat"
    path.write_text("a b 1\nb c 2\n")
    addresses = {"a": "10.0.0.1", "b": "10.0.0.2", "c": "10.0.0.3"}
    topology = Topology(path, hostname="b", resolver=addresses.__getitem__)
    table = RoutingTable.from_topology(topology)
    assert table.get_next_node(1) == 1
    assert table.get_next_node(3) == 3
    assert table.entries() == [(1, 1), (3, 3)]