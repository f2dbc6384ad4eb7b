import datetime
import io
import socket
import ssl
import threading

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from netprog.https_server import (
    BAD_REQUEST,
    NOT_FOUND,
    HttpsServer,
    RequestError,
    get_content_type,
    parse_request_path,
)


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


@pytest.fixture
def root(tmp_path):
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_bytes(b"<h1>hi</h1>")
    (public / "hello.txt").write_bytes(b"hello world")
    return public


@pytest.fixture
def server(root, cert_files):
    srv = HttpsServer(root, cert_files[0], cert_files[1], "127.0.0.1", 0, io.StringIO())
    yield srv
    srv.close()


def _exchange(port, payload):
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    chunks = []
    with socket.create_connection(("127.0.0.1", port), timeout=5) as raw:
        with context.wrap_socket(raw) as tls:
            tls.sendall(payload)
            while True:
                try:
                    data = tls.recv(4096)
                except (ssl.SSLEOFError, ConnectionResetError):
                    break
                if not data:
                    break
                chunks.append(data)
    return b"".join(chunks)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/index.html", "text/html"),
        ("/page.htm", "text/html"),
        ("/style.css", "text/css"),
        ("/app.js", "application/javascript"),
        ("/photo.jpg", "image/jpeg"),
        ("/photo.jpeg", "image/jpeg"),
        ("/notes.txt", "text/plain"),
        ("/logo.svg", "image/svg+xml"),
        ("/README", "application/octet-stream"),
        ("/archive.tar.gz", "application/octet-stream"),
        ("/dir.js/file", "application/octet-stream"),
    ],
)
def test_get_content_type(path, expected):
    assert get_content_type(path) == expected


def test_parse_request_path_returns_path():
    assert parse_request_path("GET /hello.txt HTTP/1.1\r\nHost: x") == "/hello.txt"


def test_parse_request_path_accepts_bytes():
    assert parse_request_path(b"GET / HTTP/1.1\r\n\r\n") == "/"


@pytest.mark.parametrize("request_text", ["POST / HTTP/1.1", "GET /nospace", "GET x HTTP/1.1"])
def test_parse_request_path_rejects(request_text):
    with pytest.raises(RequestError):
        parse_request_path(request_text)


def test_handle_request_serves_index_for_root(server):
    response = server.handle_request("/")
    head, _, body = response.partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/html" in head
    assert f"Content-Length: {len(body)}".encode() in head
    assert body == b"<h1>hi</h1>"


def test_handle_request_missing_file(server):
    assert server.handle_request("/missing.txt") == NOT_FOUND


def test_handle_request_rejects_parent_paths(server):
    assert server.handle_request("/../cert.pem") == NOT_FOUND


def test_handle_request_rejects_long_paths(server):
    assert server.handle_request("/" + "a" * 100) == BAD_REQUEST


def test_error_responses_are_fixed():
    assert BAD_REQUEST.endswith(b"Content-Length: 11\r\n\r\nBad Request")
    assert NOT_FOUND.startswith(b"HTTP/1.1 404 Not Found\r\n")


def _run(server):
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


def test_serves_file_over_tls(server):
    thread = _run(server)
    try:
        response = _exchange(server.address[1], b"GET /hello.txt HTTP/1.1\r\nHost: x\r\n\r\n")
    finally:
        server.close()
        thread.join(5)
    assert response.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/plain" in response
    assert response.endswith(b"\r\n\r\nhello world")
    assert "serve_resource 127.0.0.1 /hello.txt" in server.out.getvalue()
    assert not thread.is_alive()


def test_bad_method_gets_400(server):
    thread = _run(server)
    try:
        response = _exchange(server.address[1], b"POST / HTTP/1.1\r\n\r\n")
    finally:
        server.close()
        thread.join(5)
    assert response == BAD_REQUEST


def test_oversized_request_gets_400(server):
    thread = _run(server)
    try:
        response = _exchange(server.address[1], b"A" * 3000)
    finally:
        server.close()
        thread.join(5)
    assert response == BAD_REQUEST