"""Server side of the MRT reliable transport: accepting connections and receiving data."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import IntEnum

from .constants import MAX_TRANSPORT_CONNECTIONS, PKT_LOSS_RATE, RECEIVE_BUF_SIZE
from .mrt_client import MRTError
from .seg import Segment, SegmentHeader, SegmentType, mnp_recvseg, mnp_sendseg

log = logging.getLogger(__name__)


class ServerState(IntEnum):
    CLOSED = 0
    LISTENING = 1
    CONNECTED = 2
    CLOSEWAIT = 3


@dataclass
class ServerTCB:
    """Transport control block of one server connection."""

    server_port: int
    server_node_id: int = 0
    client_node_id: int = 0
    client_port: int = 0
    state: ServerState = ServerState.CLOSED
    expect_seq_num: int = 0
    buffer: bytearray = field(default_factory=bytearray)

    @property
    def used(self) -> int:
        """Number of received bytes not yet handed to the application."""
        return len(self.buffer)


class MRTServer:
    """The MRT server: a table of connections sharing one link to the network layer."""

    def __init__(self, conn, node_id: int = 0, buffer_size: int = RECEIVE_BUF_SIZE) -> None:
        self.conn = conn
        self.node_id = node_id
        self.buffer_size = buffer_size
        self.loss_rate = PKT_LOSS_RATE
        self.rng = None
        self._table: list[ServerTCB | None] = [None] * MAX_TRANSPORT_CONNECTIONS
        self._cond = threading.Condition(threading.RLock())

    def start(self) -> threading.Thread:
        """Start the thread that handles incoming segments."""
        thread = threading.Thread(target=self.seghandler, daemon=True)
        thread.start()
        return thread

    def sock(self, port: int) -> int:
        """Create a connection on a server port and return its socket ID."""
        with self._cond:
            for index, entry in enumerate(self._table):
                if entry is None:
                    self._table[index] = ServerTCB(server_port=port, server_node_id=self.node_id)
                    return index
        raise MRTError("no free transport connection")

    def tcb(self, sockfd: int) -> ServerTCB:
        with self._cond:
            if 0 <= sockfd < len(self._table) and self._table[sockfd] is not None:
                return self._table[sockfd]
        raise MRTError(f"no socket {sockfd}")

    def accept(self, sockfd: int, timeout: float | None = None) -> None:
        """Listen on a socket and block until a client has connected."""
        tcb = self.tcb(sockfd)
        with self._cond:
            tcb.state = ServerState.LISTENING
            self._cond.notify_all()
            connected = self._cond.wait_for(
                lambda: tcb.state in (ServerState.CONNECTED, ServerState.CLOSEWAIT),
                timeout,
            )
        if not connected:
            raise TimeoutError(f"no connection on socket {sockfd}")

    def recv(self, sockfd: int, length: int, timeout: float | None = None) -> bytes:
        """Block until length bytes have arrived and return them."""
        if length > self.buffer_size:
            raise ValueError(f"cannot receive more than {self.buffer_size} bytes at once")
        tcb = self.tcb(sockfd)
        with self._cond:
            if not self._cond.wait_for(lambda: tcb.used >= length, timeout):
                raise TimeoutError(f"only {tcb.used} of {length} bytes arrived")
            data = bytes(tcb.buffer[:length])
            del tcb.buffer[:length]
            return data

    def close(self, sockfd: int) -> None:
        """Free a connection's slot; it must be in CLOSEWAIT."""
        with self._cond:
            tcb = self.tcb(sockfd)
            if tcb.state != ServerState.CLOSEWAIT:
                raise MRTError(f"socket {sockfd} is {tcb.state.name}, not CLOSEWAIT")
            self._table[sockfd] = None

    def _reply(self, tcb: ServerTCB, kind: SegmentType, dest_port: int, seq_num: int = 0) -> None:
        segment = Segment(SegmentHeader(
            src_port=tcb.server_port, dest_port=dest_port, seq_num=seq_num, type=kind
        ))
        try:
            mnp_sendseg(self.conn, tcb.client_node_id, segment)
        except OSError as exc:
            log.warning("mnp_sendseg failed: %s", exc)

    def _accept_syn(self, tcb: ServerTCB, src_node_id: int, h: SegmentHeader) -> None:
        tcb.state = ServerState.CONNECTED
        tcb.client_node_id = src_node_id
        tcb.client_port = h.src_port
        tcb.expect_seq_num = 0
        self._reply(tcb, SegmentType.SYNACK, h.src_port)

    def _accept_data(self, tcb: ServerTCB, segment: Segment) -> None:
        h = segment.header
        payload = segment.data[: h.length]
        if h.seq_num == tcb.expect_seq_num and tcb.used + len(payload) <= self.buffer_size:
            tcb.expect_seq_num += len(payload)
            tcb.buffer += payload
            log.debug("received DATA %d", h.seq_num)
        else:
            log.debug("received DATA %d, expected %d", h.seq_num, tcb.expect_seq_num)
        self._reply(tcb, SegmentType.DATAACK, h.src_port, tcb.expect_seq_num)

    def handle_segment(self, src_node_id: int, segment: Segment) -> ServerTCB | None:
        """Apply one incoming segment; return the connection it was for, if any."""
        h = segment.header
        with self._cond:
            tcb = next(
                (t for t in self._table if t is not None and t.server_port == h.dest_port),
                None,
            )
            if tcb is None:
                return None
            if tcb.state == ServerState.LISTENING:
                if h.type == SegmentType.SYN:
                    self._accept_syn(tcb, src_node_id, h)
            elif tcb.state == ServerState.CONNECTED:
                if h.type == SegmentType.SYN:
                    self._accept_syn(tcb, tcb.client_node_id, h)
                elif h.type == SegmentType.FIN:
                    self._reply(tcb, SegmentType.FINACK, h.src_port)
                    tcb.state = ServerState.CLOSEWAIT
                    tcb.client_port = h.src_port
                elif h.type == SegmentType.DATA:
                    self._accept_data(tcb, segment)
            elif tcb.state == ServerState.CLOSEWAIT:
                if h.type == SegmentType.FIN:
                    self._reply(tcb, SegmentType.FINACK, h.src_port)
                    tcb.client_port = h.src_port
            self._cond.notify_all()
            return tcb

    def seghandler(self) -> None:
        """Receive segments from the network layer until the link closes."""
        while True:
            try:
                src_node_id, segment = mnp_recvseg(self.conn, self.loss_rate, self.rng)
            except ValueError:
                continue
            except (EOFError, OSError):
                log.info("no connection")
                return
            self.handle_segment(src_node_id, segment)