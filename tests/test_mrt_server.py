import socket
import threading
import time

import pytest

from mrtnet.constants import MAX_TRANSPORT_CONNECTIONS
from mrtnet.mrt_client import MRTError
from mrtnet.mrt_server import MRTServer, ServerState
from mrtnet.seg import (
    END,
    START,
    Segment,
    SegmentHeader,
    SegmentType,
    forwardseg_to_mrt,
    receive_frame,
    unpack_seg_arg,
)


class RecordingConn:
    def __init__(self):
        self.frames = []

    def sendall(self, data):
        self.frames.append(bytes(data))

    def sent(self):
        return [unpack_seg_arg(f[len(START):-len(END)]) for f in self.frames]


def make_seg(kind, src_port=87, dest_port=88, seq=0, data=b""):
    return Segment(
        SegmentHeader(src_port=src_port, dest_port=dest_port, seq_num=seq,
                      length=len(data), type=kind),
        data,
    )


def connected_server(conn=None):
    conn = conn if conn is not None else RecordingConn()
    server = MRTServer(conn, node_id=5)
    fd = server.sock(88)
    with pytest.raises(TimeoutError):
        server.accept(fd, timeout=0)
    server.handle_segment(7, make_seg(SegmentType.SYN))
    return server, fd, conn


def test_sock_allocates_sequential_slots_until_full():
    server = MRTServer(RecordingConn())
    ids = [server.sock(100 + i) for i in range(MAX_TRANSPORT_CONNECTIONS)]
    assert ids == list(range(MAX_TRANSPORT_CONNECTIONS))
    with pytest.raises(MRTError):
        server.sock(999)


def test_unknown_socket_raises():
    server = MRTServer(RecordingConn())
    with pytest.raises(MRTError):
        server.tcb(3)


def test_accept_timeout_leaves_socket_listening():
    server = MRTServer(RecordingConn())
    fd = server.sock(88)
    with pytest.raises(TimeoutError):
        server.accept(fd, timeout=0)
    assert server.tcb(fd).state == ServerState.LISTENING


def test_syn_while_listening_connects_and_sends_synack():
    server, fd, conn = connected_server()
    tcb = server.tcb(fd)
    assert tcb.state == ServerState.CONNECTED
    assert tcb.client_node_id == 7
    assert tcb.client_port == 87
    [(node, reply)] = conn.sent()
    assert node == 7
    assert reply.header.type == SegmentType.SYNACK
    assert reply.header.src_port == 88
    assert reply.header.dest_port == 87


def test_closed_socket_ignores_segments():
    conn = RecordingConn()
    server = MRTServer(conn)
    fd = server.sock(88)
    server.handle_segment(7, make_seg(SegmentType.SYN))
    assert server.tcb(fd).state == ServerState.CLOSED
    assert conn.frames == []


def test_segment_for_unknown_port_is_dropped():
    server = MRTServer(RecordingConn())
    server.sock(88)
    assert server.handle_segment(7, make_seg(SegmentType.SYN, dest_port=90)) is None


def test_in_order_data_is_buffered_and_acked():
    server, fd, conn = connected_server()
    server.handle_segment(7, make_seg(SegmentType.DATA, seq=0, data=b"hello\0"))
    tcb = server.tcb(fd)
    assert bytes(tcb.buffer) == b"hello\0"
    assert tcb.expect_seq_num == len(b"hello\0")
    node, ack = conn.sent()[-1]
    assert node == 7
    assert ack.header.type == SegmentType.DATAACK
    assert ack.header.seq_num == len(b"hello\0")


def test_out_of_order_data_is_dropped_and_expected_reacked():
    server, fd, conn = connected_server()
    server.handle_segment(7, make_seg(SegmentType.DATA, seq=6, data=b"byebye"))
    assert server.tcb(fd).used == 0
    _, ack = conn.sent()[-1]
    assert ack.header.type == SegmentType.DATAACK
    assert ack.header.seq_num == 0


def test_data_beyond_buffer_size_is_not_accepted():
    conn = RecordingConn()
    server = MRTServer(conn, node_id=5, buffer_size=4)
    fd = server.sock(88)
    with pytest.raises(TimeoutError):
        server.accept(fd, timeout=0)
    server.handle_segment(7, make_seg(SegmentType.SYN))
    server.handle_segment(7, make_seg(SegmentType.DATA, data=b"toolong"))
    assert server.tcb(fd).used == 0
    with pytest.raises(ValueError):
        server.recv(fd, 5, timeout=0)


def test_recv_returns_bytes_in_order_and_keeps_the_rest():
    server, fd, _ = connected_server()
    server.handle_segment(7, make_seg(SegmentType.DATA, seq=0, data=b"hello"))
    server.handle_segment(7, make_seg(SegmentType.DATA, seq=5, data=b"world"))
    assert server.recv(fd, 3, timeout=1) == b"hel"
    assert server.recv(fd, 7, timeout=1) == b"loworld"
    assert server.tcb(fd).used == 0


def test_recv_times_out_when_data_is_short():
    server, fd, _ = connected_server()
    server.handle_segment(7, make_seg(SegmentType.DATA, data=b"ab"))
    with pytest.raises(TimeoutError):
        server.recv(fd, 3, timeout=0.05)
    assert server.tcb(fd).used == 2


def test_duplicate_syn_resets_sequence_and_resends_synack():
    server, fd, conn = connected_server()
    server.handle_segment(7, make_seg(SegmentType.DATA, data=b"abc"))
    server.handle_segment(7, make_seg(SegmentType.SYN))
    assert server.tcb(fd).expect_seq_num == 0
    assert server.tcb(fd).state == ServerState.CONNECTED
    assert conn.sent()[-1][1].header.type == SegmentType.SYNACK


def test_fin_moves_to_closewait_and_close_frees_slot():
    server, fd, conn = connected_server()
    server.handle_segment(7, make_seg(SegmentType.FIN))
    assert server.tcb(fd).state == ServerState.CLOSEWAIT
    assert conn.sent()[-1][1].header.type == SegmentType.FINACK
    server.handle_segment(7, make_seg(SegmentType.FIN))
    assert [s.header.type for _, s in conn.sent()].count(SegmentType.FINACK) == 2
    server.close(fd)
    with pytest.raises(MRTError):
        server.tcb(fd)
    assert server.sock(90) == fd


def test_close_requires_closewait():
    server, fd, _ = connected_server()
    with pytest.raises(MRTError):
        server.close(fd)
    assert server.tcb(fd).state == ServerState.CONNECTED


def test_accept_wakes_when_syn_arrives():
    server = MRTServer(RecordingConn(), node_id=5)
    fd = server.sock(88)
    errors = []

    def run():
        try:
            server.accept(fd, timeout=5)
        except Exception as exc:
            errors.append(exc)

    thread = threading.Thread(target=run)
    thread.start()
    deadline = time.monotonic() + 5
    while server.tcb(fd).state != ServerState.LISTENING and time.monotonic() < deadline:
        time.sleep(0.01)
    server.handle_segment(7, make_seg(SegmentType.SYN))
    thread.join(5)
    assert not thread.is_alive()
    assert errors == []
    assert server.tcb(fd).state == ServerState.CONNECTED


def test_seghandler_over_a_socket():
    a, b = socket.socketpair()
    try:
        server = MRTServer(a, node_id=5)
        server.loss_rate = 0
        fd = server.sock(88)
        with pytest.raises(TimeoutError):
            server.accept(fd, timeout=0)
        thread = server.start()
        forwardseg_to_mrt(b, 7, make_seg(SegmentType.SYN))
        forwardseg_to_mrt(b, 7, make_seg(SegmentType.DATA, data=b"hello"))
        assert server.recv(fd, 5, timeout=5) == b"hello"
        _, synack = unpack_seg_arg(receive_frame(b))
        _, ack = unpack_seg_arg(receive_frame(b))
        assert synack.header.type == SegmentType.SYNACK
        assert ack.header.seq_num == 5
        b.close()
        thread.join(5)
        assert not thread.is_alive()
    finally:
        a.close()
        b.close()