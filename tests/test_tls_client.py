import io
import socket
import threading

import pytest

from netprog import tls_client


@pytest.fixture
def stdin_pair():
    reader, writer = socket.socketpair()
    stdin = reader.makefile("r", encoding="utf-8", newline="")
    yield stdin, writer
    stdin.close()
    reader.close()
    writer.close()


@pytest.fixture
def peer_pair():
    client, peer = socket.socketpair()
    yield client, peer
    client.close()
    peer.close()


def test_receives_until_peer_closes(stdin_pair, peer_pair):
    stdin, _ = stdin_pair
    client, peer = peer_pair
    peer.sendall(b"hello")
    peer.close()
    out = io.StringIO()
    received = tls_client.run_client(client, stdin, out)
    assert received == b"hello"
    text = out.getvalue()
    assert "Received (5 bytes): hello" in text
    assert text.endswith("Connection closed by peer.\n")


def test_sends_stdin_lines_and_stops_at_eof(stdin_pair, peer_pair):
    stdin, writer = stdin_pair
    client, peer = peer_pair
    writer.sendall(b"ping\n")
    writer.shutdown(socket.SHUT_WR)
    out = io.StringIO()
    received = tls_client.run_client(client, stdin, out)
    assert received == b""
    peer.settimeout(5)
    assert peer.recv(100) == b"ping\n"
    text = out.getvalue()
    assert "Sending: ping\n" in text
    assert "Sent 5 bytes.\n" in text
    assert "Connection closed by peer." not in text


def test_data_arriving_later_is_collected(stdin_pair, peer_pair):
    stdin, _ = stdin_pair
    client, peer = peer_pair

    def talk():
        peer.sendall(b"first ")
        peer.sendall(b"second")
        peer.close()

    thread = threading.Thread(target=talk)
    thread.start()
    received = tls_client.run_client(client, stdin, io.StringIO())
    thread.join(timeout=5)
    assert received == b"first second"


def test_main_usage(capsys):
    assert tls_client.main(["localhost"]) == 1
    assert "usage: tls_client hostname port" in capsys.readouterr().err