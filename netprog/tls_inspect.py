"""Open TLS connections, show the peer certificate and make a simple request."""

import ssl
import sys

from cryptography import x509

from netprog.net import connect_to_host

READ_SIZE = 2048


def format_name(name):
    """Render an X.509 name in one line as ``/C=../O=../CN=..``."""
    return "".join(f"/{attr.rfc4514_attribute_name}={attr.value}" for attr in name)


def describe_certificate(der):
    """Return ``(subject, issuer)`` of a DER-encoded certificate, each in one line."""
    cert = x509.load_der_x509_certificate(der)
    return format_name(cert.subject), format_name(cert.issuer)


def _client_context():
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def open_tls(hostname, port, out=None):
    """Connect to ``hostname:port``, run a TLS handshake with SNI and report it.

    The cipher and the peer certificate's subject and issuer are written to
    ``out``.  The certificate is shown, not verified.  Returns the TLS socket.
    """
    out = sys.stdout if out is None else out
    sock = connect_to_host(hostname, str(port), out)
    try:
        tls = _client_context().wrap_socket(sock, server_hostname=hostname)
    except BaseException:
        sock.close()
        raise

    try:
        out.write(f"SSL/TLS using {tls.cipher()[0]}\n")
        der = tls.getpeercert(binary_form=True)
        if not der:
            raise ssl.SSLError("SSL_get_peer_certificate() failed.")
        subject, issuer = describe_certificate(der)
        out.write(f"subject: {subject}\n")
        out.write(f"issuer: {issuer}\n")
    except BaseException:
        tls.close()
        raise
    return tls


def build_simple_request(hostname, port):
    """Return the request for ``/`` sent by :func:`https_simple`."""
    return (
        "GET / HTTP/1.1\r\n"
        f"Host: {hostname}:{port}\r\n"
        "Connection: close\r\n"
        "User-Agent: https_simple\r\n"
        "\r\n"
    )


def _read_chunks(tls):
    while True:
        try:
            data = tls.recv(READ_SIZE)
        except (ssl.SSLZeroReturnError, ssl.SSLEOFError, ConnectionResetError):
            return
        if not data:
            return
        yield data


def https_simple(hostname, port, out=None):
    """Request ``/`` over TLS and echo every piece of the raw response.

    Returns all bytes received until the peer closed the connection.
    """
    out = sys.stdout if out is None else out
    received = bytearray()
    with open_tls(hostname, port, out) as tls:
        request = build_simple_request(hostname, port)
        tls.sendall(request.encode("utf-8"))
        out.write(f"Sent Headers:\n{request}")

        for data in _read_chunks(tls):
            received += data
            text = data.decode("utf-8", errors="replace")
            out.write(f"Received ({len(data)} bytes): '{text}'\n")
        out.write("\nConnection closed by peer.\n")
        out.write("\nClosing socket...\n")

    out.write("Finished.\n")
    return bytes(received)


def get_certificate(hostname, port, out=None):
    """Handshake with ``hostname:port`` and return ``(subject, issuer)``."""
    out = sys.stdout if out is None else out
    with open_tls(hostname, port, out) as tls:
        der = tls.getpeercert(binary_form=True)
        out.write("\nClosing socket...\n")
    out.write("Finished.\n")
    return describe_certificate(der)


def openssl_version():
    """Return the version text of the TLS library in use."""
    return ssl.OPENSSL_VERSION


def _host_port(argv, usage):
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print(usage, file=sys.stderr)
        return None
    return args[0], args[1]


def main_get_cert(argv=None):
    """Show the certificate of the server given as ``hostname port``."""
    target = _host_port(argv, "usage: tls_get_cert hostname port")
    if target is None:
        return 1
    try:
        get_certificate(*target)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


def main_simple(argv=None):
    """Request ``/`` from the server given as ``hostname port``."""
    target = _host_port(argv, "usage: https_simple hostname port")
    if target is None:
        return 1
    try:
        https_simple(*target)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


def main_version(argv=None):
    """Print the TLS library version."""
    version = openssl_version()
    if not version:
        print("TLS library version unavailable.", file=sys.stderr)
        return 1
    print(f"OpenSSL version: {version}")
    return 0


if __name__ == "__main__":
    sys.exit(main_get_cert())