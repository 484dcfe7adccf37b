"""Segments and their framed exchange between the transport and network layers."""

from __future__ import annotations

import random
import struct
from dataclasses import dataclass, field
from enum import IntEnum

from .constants import MAX_SEG_LEN, PKT_LOSS_RATE

START = b"!&"
END = b"!#"

_HEADER = struct.Struct("<IIIIHHHH")
_NODE = struct.Struct("<i")
HEADER_SIZE = _HEADER.size
SEGMENT_SIZE = HEADER_SIZE + MAX_SEG_LEN
SEG_ARG_SIZE = _NODE.size + SEGMENT_SIZE


class SegmentType(IntEnum):
    SYN = 0
    SYNACK = 1
    FIN = 2
    FINACK = 3
    DATA = 4
    DATAACK = 5


@dataclass
class SegmentHeader:
    src_port: int = 0
    dest_port: int = 0
    seq_num: int = 0
    ack_num: int = 0
    length: int = 0
    type: int = SegmentType.SYN
    rcv_win: int = 0
    checksum: int = 0


@dataclass
class Segment:
    header: SegmentHeader = field(default_factory=SegmentHeader)
    data: bytes = b""

    def pack(self) -> bytes:
        """Serialise to the fixed-size wire form."""
        if len(self.data) > MAX_SEG_LEN:
            raise ValueError(f"segment data exceeds {MAX_SEG_LEN} bytes")
        h = self.header
        head = _HEADER.pack(
            h.src_port, h.dest_port, h.seq_num, h.ack_num,
            h.length, int(h.type), h.rcv_win, h.checksum,
        )
        return head + self.data.ljust(MAX_SEG_LEN, b"\0")

    @classmethod
    def unpack(cls, data: bytes) -> "Segment":
        if len(data) != SEGMENT_SIZE:
            raise ValueError(f"segment must be {SEGMENT_SIZE} bytes, got {len(data)}")
        fields = list(_HEADER.unpack_from(data))
        try:
            fields[5] = SegmentType(fields[5])
        except ValueError:
            pass
        header = SegmentHeader(*fields)
        body = data[HEADER_SIZE:]
        return cls(header, bytes(body[: header.length]))


def send_frame(conn, payload: bytes) -> None:
    """Send a payload between the !& and !# delimiters."""
    conn.sendall(START + payload + END)


def receive_frame(conn) -> bytes:
    """Read one delimited frame and return its payload; EOFError on close."""
    waiting_start, after_bang, receiving, maybe_end = range(4)
    state = waiting_start
    buf = bytearray()
    while True:
        c = conn.recv(1)
        if not c:
            raise EOFError("connection closed while reading a frame")
        if state == waiting_start:
            if c == b"!":
                state = after_bang
        elif state == after_bang:
            state = receiving if c == b"&" else waiting_start
        elif state == receiving:
            buf += c
            if c == b"!":
                state = maybe_end
        else:
            if c == b"#":
                return bytes(buf[:-1])
            buf += c
            if c != b"!":
                state = receiving


def pack_seg_arg(node_id: int, segment: Segment) -> bytes:
    return _NODE.pack(node_id) + segment.pack()


def unpack_seg_arg(data: bytes) -> tuple[int, Segment]:
    if len(data) != SEG_ARG_SIZE:
        raise ValueError(f"segment argument must be {SEG_ARG_SIZE} bytes, got {len(data)}")
    (node_id,) = _NODE.unpack_from(data)
    return node_id, Segment.unpack(data[_NODE.size:])


def mnp_sendseg(conn, dest_node_id: int, segment: Segment) -> None:
    """Hand a segment and its destination node to the network layer."""
    send_frame(conn, pack_seg_arg(dest_node_id, segment))


def mnp_recvseg(conn, loss_rate: float = PKT_LOSS_RATE, rng=None) -> tuple[int, Segment]:
    """Receive (source node, segment) from the network layer, emulating loss."""
    while True:
        node_id, segment = unpack_seg_arg(receive_frame(conn))
        if seglost(loss_rate, rng):
            continue
        return node_id, segment


def getseg_to_send(conn) -> tuple[int, Segment]:
    """Receive (destination node, segment) from the transport layer."""
    return unpack_seg_arg(receive_frame(conn))


def forwardseg_to_mrt(conn, src_node_id: int, segment: Segment) -> None:
    """Pass a segment and its source node up to the transport layer."""
    send_frame(conn, pack_seg_arg(src_node_id, segment))


def seglost(loss_rate: float = PKT_LOSS_RATE, rng=None) -> bool:
    """Return True if a segment should be treated as lost."""
    rng = rng if rng is not None else random
    return rng.randrange(100) < loss_rate * 100