# mrtnet

Building blocks of a small layered overlay network that runs over
ordinary TCP connections between hosts.

- `mrtnet.topology`: reads a topology file and answers questions about
  it, such as node IDs, neighbours, all nodes and direct link costs.
- `mrtnet.neighbortable`: `NeighborTable` holds this node's direct
  neighbours, their IP addresses and one connection for each.
- `mrtnet.nbrcosttable`: `NeighborCostTable` holds the direct link cost
  to each neighbour.
- `mrtnet.dvtable`: `DistanceVectorTable` holds one distance vector per
  neighbour and one for this node.
- `mrtnet.routing_table`: `RoutingTable` maps each destination to a
  next hop. It is kept in hashed slots (`make_hash`).
- `mrtnet.seg`: transport segments (`Segment`, `SegmentHeader`,
  `SegmentType`) and the framed exchange of segments with a network
  layer. Each frame is wrapped in `!&` ... `!#` (`mnp_sendseg`,
  `mnp_recvseg`, `getseg_to_send`, `forwardseg_to_mrt`). It also
  simulates segment loss (`seglost`).
- `mrtnet.mrt_client` and `mrtnet.mrt_server`: a reliable, one-way,
  Go-Back-N transport. Connections open with a SYN handshake and close
  with a FIN handshake, and the server buffers what it receives.
- `mrtnet.constants`: ports, timeouts, window and table sizes.

## Topology file

A topology file has one link per line, in the form
`host1 host2 cost`:

```
green1 green2 4
green1 green3 3
green2 green4 1
```

A node ID is the last octet of the host's IPv4 address. Host names are
resolved when IDs are needed. You can pass your own resolver:

```python
from mrtnet.topology import Topology

addresses = {"green1": "10.0.0.1", "green2": "10.0.0.2",
             "green3": "10.0.0.3", "green4": "10.0.0.4"}
topo = Topology("topology.dat", hostname="green1", resolver=addresses.__getitem__)
topo.neighbor_ids()   # [2, 3]
topo.cost(1, 2)       # 4
```

The tables can be built from a `Topology`. Use
`NeighborTable.from_topology`, `NeighborCostTable.from_topology`,
`DistanceVectorTable.from_topology` or `RoutingTable.from_topology`.

## Transport

`MRTClient` and `MRTServer` work over one connection to a network
layer. That connection can be any object with `sendall` and `recv`,
such as a TCP socket. The two classes exchange segments over it in
`mrtnet.seg` framing. Each failed operation raises `MRTError`.
`MRTServer.accept` and `MRTServer.recv` raise `TimeoutError` when you
give them a timeout and it runs out.

```python
import socket
from mrtnet.constants import NETWORK_PORT
from mrtnet.mrt_client import MRTClient

conn = socket.create_connection(("127.0.0.1", NETWORK_PORT))
client = MRTClient(conn, node_id=1)
client.start()
sockfd = client.sock(87)
client.connect(sockfd, 2, 88)
client.send(sockfd, b"hello\0")
client.disconnect(sockfd)
client.close(sockfd)
```

On the server side:

```python
from mrtnet.mrt_server import MRTServer

server = MRTServer(conn, node_id=2)
server.start()
sockfd = server.sock(88)
server.accept(sockfd)
data = server.recv(sockfd, 6)
```

Incoming segments are dropped at random at the rate set by `loss_rate`
(10% by default). This simulates an unreliable network.

## What this package does not do

This package provides the tables, the transport and the segment
framing, but no processes to run:

- It has no process that links the hosts in the topology to each other.
- It has no network-layer process that exchanges route updates or
  forwards segments hop by hop.
- It installs no commands.

To use the transport you must supply your own peer that listens on
`NETWORK_PORT` and speaks the `mrtnet.seg` framing.

## Tests

```
pip install .[test]
pytest
```