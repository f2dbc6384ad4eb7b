"""Interactive TLS client: lines from standard input go to the peer."""

import selectors
import ssl
import sys

from netprog.net import connect_to_host
from netprog.tls_inspect import describe_certificate

READ_SIZE = 4096
POLL_INTERVAL = 0.1

_WAITING = (ssl.SSLWantReadError, ssl.SSLWantWriteError, BlockingIOError)
_CLOSED = (ssl.SSLZeroReturnError, ssl.SSLEOFError, ConnectionError)


def _pending(sock):
    pending = getattr(sock, "pending", None)
    return pending() if pending is not None else 0


def _send_line(sock, line):
    data = line.encode("utf-8")
    sock.setblocking(True)
    try:
        sock.sendall(data)
    finally:
        sock.setblocking(False)
    return len(data)


def run_client(tls_sock, stdin=None, out=None):
    """Relay lines from ``stdin`` to ``tls_sock`` and echo what the peer sends.

    Stops when the peer closes the connection or ``stdin`` reaches its end.
    Returns all bytes received from the peer.
    """
    stdin = sys.stdin if stdin is None else stdin
    out = sys.stdout if out is None else out
    received = bytearray()

    tls_sock.setblocking(False)
    with selectors.DefaultSelector() as selector:
        selector.register(tls_sock, selectors.EVENT_READ, "peer")
        selector.register(stdin, selectors.EVENT_READ, "stdin")
        while True:
            ready = {key.data for key, _ in selector.select(POLL_INTERVAL)}
            if _pending(tls_sock):
                ready.add("peer")

            if "peer" in ready:
                try:
                    data = tls_sock.recv(READ_SIZE)
                except _WAITING:
                    data = None
                except _CLOSED:
                    data = b""
                if data == b"":
                    out.write("Connection closed by peer.\n")
                    break
                if data:
                    received += data
                    text = data.decode("utf-8", errors="replace")
                    out.write(f"Received ({len(data)} bytes): {text}")

            if "stdin" in ready:
                line = stdin.readline()
                if not line:
                    break
                out.write(f"Sending: {line}")
                sent = _send_line(tls_sock, line)
                out.write(f"Sent {sent} bytes.\n")

    tls_sock.setblocking(True)
    return bytes(received)


def main(argv=None):
    """Connect to ``hostname port`` over TLS and start relaying."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("usage: tls_client hostname port", file=sys.stderr)
        return 1

    out = sys.stdout
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        sock = connect_to_host(args[0], args[1], out)
        try:
            tls = context.wrap_socket(sock)
        except BaseException:
            sock.close()
            raise
        with tls:
            out.write(f"SSL/TLS using {tls.cipher()[0]}\n")
            der = tls.getpeercert(binary_form=True)
            if not der:
                raise ssl.SSLError("SSL_get_peer_certificate() failed.")
            subject, issuer = describe_certificate(der)
            out.write(f"subject: {subject}\n")
            out.write(f"issuer: {issuer}\n")
            out.write("Connected.\n")
            out.write("To send data, enter text followed by enter.\n")
            run_client(tls, sys.stdin, out)
            out.write("Closing socket...\n")
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1

    out.write("Finished.\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())