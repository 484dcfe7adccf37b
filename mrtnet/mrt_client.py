"""Client side of the MRT reliable transport: connection setup, go-back-N sending, teardown."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from itertools import islice

from .constants import (
    DATA_TIMEOUT,
    FIN_TIMEOUT,
    GBN_WINDOW,
    MAX_SEG_LEN,
    MAX_TRANSPORT_CONNECTIONS,
    PKT_LOSS_RATE,
    SENDBUF_POLLING_INTERVAL,
    SYN_MAX_RETRY,
    SYN_TIMEOUT,
)
from .seg import Segment, SegmentHeader, SegmentType, mnp_recvseg, mnp_sendseg

log = logging.getLogger(__name__)


class ClientState(IntEnum):
    CLOSED = 0
    SYNSENT = 1
    CONNECTED = 2
    FINWAIT = 3


class MRTError(Exception):
    """Raised when an MRT client operation cannot be carried out."""


@dataclass
class _Pending:
    segment: Segment
    sent_time: float = 0.0


@dataclass
class ClientTCB:
    """Transport control block of one client connection."""

    client_port: int
    client_node_id: int = 0
    server_node_id: int = 0
    server_port: int = 0
    state: ClientState = ClientState.CLOSED
    next_seq_num: int = 0
    send_buffer: deque = field(default_factory=deque)
    unacked: int = 0
    timer_running: bool = False

    @property
    def unsent(self) -> list[Segment]:
        return [p.segment for p in islice(self.send_buffer, self.unacked, None)]


def split_segments(
    data: bytes, src_port: int, dest_port: int, first_seq_num: int
) -> list[Segment]:
    """Cut data into DATA segments of at most MAX_SEG_LEN bytes.

    As many full segments as fit are produced, followed by one holding the
    remainder, which is empty when the length is an exact multiple.
    """
    full = len(data) // MAX_SEG_LEN
    segments = []
    seq = first_seq_num
    for start in range(0, (full + 1) * MAX_SEG_LEN, MAX_SEG_LEN):
        chunk = bytes(data[start:start + MAX_SEG_LEN])
        header = SegmentHeader(
            src_port=src_port,
            dest_port=dest_port,
            seq_num=seq,
            length=len(chunk),
            type=SegmentType.DATA,
        )
        segments.append(Segment(header, chunk))
        seq += len(chunk)
    return segments


class MRTClient:
    """The MRT client: a table of connections sharing one link to the network layer."""

    def __init__(
        self,
        conn,
        node_id: int = 0,
        syn_timeout: float = SYN_TIMEOUT / 1e9,
        fin_timeout: float = FIN_TIMEOUT / 1e9,
        max_retry: int = SYN_MAX_RETRY,
    ) -> None:
        self.conn = conn
        self.node_id = node_id
        self.syn_timeout = syn_timeout
        self.fin_timeout = fin_timeout
        self.max_retry = max_retry
        self.loss_rate = PKT_LOSS_RATE
        self.rng = None
        self.poll_interval = SENDBUF_POLLING_INTERVAL / 1e9
        self.data_timeout = DATA_TIMEOUT / 1e6
        self._table: list[ClientTCB | None] = [None] * MAX_TRANSPORT_CONNECTIONS
        self._cond = threading.Condition(threading.RLock())

    def start(self) -> threading.Thread:
        """Start the thread that handles incoming segments."""
        thread = threading.Thread(target=self.seghandler, daemon=True)
        thread.start()
        return thread

    def sock(self, client_port: int) -> int:
        """Create a connection on a client port and return its socket ID."""
        with self._cond:
            for index, entry in enumerate(self._table):
                if entry is None:
                    self._table[index] = ClientTCB(
                        client_port=client_port, client_node_id=self.node_id
                    )
                    return index
        raise MRTError("no free transport connection")

    def tcb(self, sockfd: int) -> ClientTCB:
        with self._cond:
            if 0 <= sockfd < len(self._table) and self._table[sockfd] is not None:
                return self._table[sockfd]
        raise MRTError(f"no socket {sockfd}")

    def _transmit(self, tcb: ClientTCB, segment: Segment) -> bool:
        try:
            mnp_sendseg(self.conn, tcb.server_node_id, segment)
        except OSError as exc:
            log.warning("mnp_sendseg failed: %s", exc)
            return False
        return True

    def _wait_state(self, tcb: ClientTCB, state: ClientState, timeout: float) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: tcb.state == state, timeout)

    def _handshake(self, tcb: ClientTCB, segment: Segment, target: ClientState,
                   timeout: float) -> bool:
        self._transmit(tcb, segment)
        for _ in range(self.max_retry):
            if self._wait_state(tcb, target, timeout):
                return True
            self._transmit(tcb, segment)
        with self._cond:
            if tcb.state == target:
                return True
            tcb.state = ClientState.CLOSED
            self._cond.notify_all()
        return False

    def connect(self, sockfd: int, node_id: int, server_port: int) -> None:
        """Open a connection to a server port on a node, retrying the SYN."""
        tcb = self.tcb(sockfd)
        with self._cond:
            if tcb.state != ClientState.CLOSED:
                raise MRTError(f"socket {sockfd} is {tcb.state.name}, not CLOSED")
            tcb.state = ClientState.SYNSENT
            tcb.server_node_id = node_id
        syn = Segment(SegmentHeader(
            src_port=tcb.client_port, dest_port=server_port, type=SegmentType.SYN
        ))
        if not self._handshake(tcb, syn, ClientState.CONNECTED, self.syn_timeout):
            raise MRTError(f"no SYNACK from node {node_id} port {server_port}")

    def _send_unsent(self, tcb: ClientTCB) -> None:
        while tcb.unacked <= GBN_WINDOW and tcb.unacked < len(tcb.send_buffer):
            pending = tcb.send_buffer[tcb.unacked]
            pending.sent_time = time.monotonic()
            self._transmit(tcb, pending.segment)
            tcb.unacked += 1

    def send(self, sockfd: int, data: bytes) -> int:
        """Queue data for reliable delivery; return the number of segments made."""
        tcb = self.tcb(sockfd)
        data = bytes(data)
        with self._cond:
            if tcb.state != ClientState.CONNECTED:
                raise MRTError(f"socket {sockfd} is not connected")
            segments = split_segments(
                data, tcb.client_port, tcb.server_port, tcb.next_seq_num
            )
            tcb.next_seq_num += len(data)
            tcb.send_buffer.extend(_Pending(s) for s in segments)
            if not tcb.timer_running:
                tcb.timer_running = True
                threading.Thread(
                    target=self._sendbuf_timer, args=(tcb,), daemon=True
                ).start()
            self._send_unsent(tcb)
        return len(segments)

    def _sendbuf_timer(self, tcb: ClientTCB) -> None:
        """Resend every sent but unacknowledged segment once the oldest times out."""
        while True:
            with self._cond:
                if tcb.state != ClientState.CONNECTED or not tcb.send_buffer:
                    tcb.timer_running = False
                    return
            time.sleep(self.poll_interval)
            with self._cond:
                if tcb.state != ClientState.CONNECTED or not tcb.send_buffer:
                    tcb.timer_running = False
                    return
                if tcb.unacked == 0:
                    continue
                now = time.monotonic()
                if now - tcb.send_buffer[0].sent_time > self.data_timeout:
                    for pending in islice(tcb.send_buffer, tcb.unacked):
                        pending.sent_time = now
                        log.debug("resend %d", pending.segment.header.seq_num)
                        self._transmit(tcb, pending.segment)

    def disconnect(self, sockfd: int) -> None:
        """Close a connection with FIN, retrying until FINACK or the retries run out."""
        tcb = self.tcb(sockfd)
        with self._cond:
            if tcb.state != ClientState.CONNECTED:
                raise MRTError(f"socket {sockfd} is not connected")
            tcb.state = ClientState.FINWAIT
        fin = Segment(SegmentHeader(
            src_port=tcb.client_port, dest_port=tcb.server_port, type=SegmentType.FIN
        ))
        if not self._handshake(tcb, fin, ClientState.CLOSED, self.fin_timeout):
            raise MRTError(f"no FINACK on socket {sockfd}")

    def close(self, sockfd: int) -> None:
        """Free a closed connection's slot."""
        with self._cond:
            tcb = self.tcb(sockfd)
            if tcb.state != ClientState.CLOSED:
                raise MRTError(f"socket {sockfd} is {tcb.state.name}, not CLOSED")
            self._table[sockfd] = None

    def handle_segment(self, src_node_id: int, segment: Segment) -> ClientTCB | None:
        """Apply one incoming segment; return the connection it was for, if any."""
        h = segment.header
        with self._cond:
            tcb = next(
                (t for t in self._table if t is not None and t.client_port == h.dest_port),
                None,
            )
            if tcb is None:
                return None
            if tcb.state == ClientState.SYNSENT and h.type == SegmentType.SYNACK:
                tcb.state = ClientState.CONNECTED
                tcb.server_port = h.src_port
            elif tcb.state == ClientState.CONNECTED and h.type == SegmentType.DATAACK:
                buffer = tcb.send_buffer
                while buffer and h.seq_num > buffer[0].segment.header.seq_num:
                    buffer.popleft()
                    if tcb.unacked:
                        tcb.unacked -= 1
                self._send_unsent(tcb)
            elif tcb.state == ClientState.FINWAIT and h.type == SegmentType.FINACK:
                tcb.state = ClientState.CLOSED
                tcb.server_port = h.src_port
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