import io
import socket

import pytest

from netprog.net import connect_to_host, format_peer


def test_connect_to_host_reaches_listener():
    with socket.create_server(("127.0.0.1", 0)) as listener:
        port = listener.getsockname()[1]
        out = io.StringIO()
        sock = connect_to_host("127.0.0.1", str(port), out)
        with sock:
            assert sock.getpeername() == ("127.0.0.1", port)
    text = out.getvalue()
    assert text.startswith("Configuring remote address...\n")
    assert "Remote address is: 127.0.0.1 " in text
    assert "Creating socket...\nConnecting...\n" in text
    assert text.endswith("Connected.\n\n")


def test_connect_to_host_accepts_integer_port():
    with socket.create_server(("127.0.0.1", 0)) as listener:
        port = listener.getsockname()[1]
        with connect_to_host("127.0.0.1", port, io.StringIO()) as sock:
            assert sock.getpeername()[1] == port


def test_connect_to_host_refused():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    out = io.StringIO()
    with pytest.raises(ConnectionRefusedError):
        connect_to_host("127.0.0.1", str(port), out)
    assert "Connected." not in out.getvalue()
    assert "Connecting...\n" in out.getvalue()


def test_connect_to_host_unknown_service():
    with pytest.raises(socket.gaierror):
        connect_to_host("127.0.0.1", "no-such-service-name", io.StringIO())


def test_format_peer_numeric_host():
    text = format_peer(("127.0.0.1", 80))
    parts = text.split(" ")
    assert len(parts) == 2
    assert parts[0] == "127.0.0.1"