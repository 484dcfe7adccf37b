"""Parameters shared by the transport, network and overlay layers."""

# Transport layer
MAX_TRANSPORT_CONNECTIONS = 10
MAX_SEG_LEN = 1464
PKT_LOSS_RATE = 0.1
SYN_TIMEOUT = 500_000_000  # nanoseconds
FIN_TIMEOUT = 500_000_000  # nanoseconds
SYN_MAX_RETRY = 5
FIN_MAX_RETRY = 5
CLOSEWAIT_TIME = 1  # seconds
SENDBUF_POLLING_INTERVAL = 100_000_000  # nanoseconds
RECVBUF_POLLING_INTERVAL = 1  # seconds
ACCEPT_POLLING_INTERVAL = 100_000_000  # nanoseconds
RECEIVE_BUF_SIZE = 1_000_000
DATA_TIMEOUT = 500_000  # microseconds
GBN_WINDOW = 10

# Overlay
CONNECTION_PORT = 3423
OVERLAY_PORT = 3548
MAX_PKT_LEN = 1488

# Network layer
MAX_NODE_NUM = 10
MAX_ROUTINGTABLE_SLOTS = 10
INFINITE_COST = 999
NETWORK_PORT = 4162
BROADCAST_NODEID = 9999
ROUTEUPDATE_INTERVAL = 5  # seconds

TOPOLOGY_FILE = "../topology/topology.dat"