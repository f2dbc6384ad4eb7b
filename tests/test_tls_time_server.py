import datetime
import io
import socket
import ssl
import threading
import time

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from netprog.tls_time_server import RESPONSE_HEAD, serve, time_response


@pytest.fixture
def cert_files(tmp_path):
    private_key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private_key, hashes.SHA256())
    )
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return str(cert_path), str(key_path)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def _connect(port):
    deadline = time.monotonic() + 5
    while True:
        try:
            return socket.create_connection(("127.0.0.1", port), timeout=5)
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)


def test_time_response_uses_ctime_format():
    moment = datetime.datetime(2024, 1, 5, 9, 3, 7)
    assert time_response(moment) == RESPONSE_HEAD + "Fri Jan  5 09:03:07 2024\n"


def test_time_response_head():
    text = time_response()
    assert text.startswith("HTTP/1.1 200 OK\r\nConnection: close\r\n")
    assert "Content-Type: text/plain\r\n\r\nLocal time is: " in text
    assert text.endswith("\n")


def test_serves_time_over_tls(cert_files):
    port = _free_port()
    out = io.StringIO()
    result = []
    thread = threading.Thread(
        target=lambda: result.append(
            serve(cert_files[0], cert_files[1], "127.0.0.1", port, out, 1)
        ),
        daemon=True,
    )
    thread.start()

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    chunks = []
    with _connect(port) as raw, context.wrap_socket(raw) as tls:
        tls.sendall(b"GET / HTTP/1.1\r\n\r\n")
        while True:
            try:
                data = tls.recv(4096)
            except (ssl.SSLEOFError, ConnectionResetError):
                break
            if not data:
                break
            chunks.append(data)
    thread.join(5)

    response = b"".join(chunks).decode("ascii")
    assert response.startswith(RESPONSE_HEAD)
    assert str(datetime.datetime.now().year) in response
    assert result == [1]
    log = out.getvalue()
    assert "Received 18 bytes." in log
    assert f"Sent {len(RESPONSE_HEAD)} of {len(RESPONSE_HEAD)} bytes." in log
    assert log.endswith("Closing listening socket...\nFinished.\n")


def test_failed_handshake_is_skipped(cert_files):
    port = _free_port()
    out = io.StringIO()
    result = []
    thread = threading.Thread(
        target=lambda: result.append(
            serve(cert_files[0], cert_files[1], "127.0.0.1", port, out, 1)
        ),
        daemon=True,
    )
    thread.start()

    with _connect(port) as raw:
        raw.sendall(b"hello, not tls\r\n\r\n")
        try:
            raw.recv(1024)
        except OSError:
            pass
    thread.join(5)

    assert result == [1]
    assert "Reading request..." not in out.getvalue()
    assert "Client is connected... 127.0.0.1" in out.getvalue()