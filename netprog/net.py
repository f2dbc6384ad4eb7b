"""Connection helpers shared by the command-line clients."""

import socket
import sys


def format_peer(sockaddr):
    """Return "address service" for a socket address, with a numeric host."""
    host, service = socket.getnameinfo(sockaddr, socket.NI_NUMERICHOST)
    return f"{host} {service}"


def connect_to_host(hostname, port, out=None):
    """Resolve ``hostname``/``port``, connect a TCP socket and return it.

    Progress is written to ``out`` (standard output by default).  Resolution
    and connection failures propagate as :class:`OSError`.
    """
    out = sys.stdout if out is None else out
    out.write("Configuring remote address...\n")
    family, socktype, proto, _, sockaddr = socket.getaddrinfo(
        hostname, port, type=socket.SOCK_STREAM
    )[0]
    out.write(f"Remote address is: {format_peer(sockaddr)}\n")

    out.write("Creating socket...\n")
    sock = socket.socket(family, socktype, proto)

    out.write("Connecting...\n")
    try:
        sock.connect(sockaddr)
    except OSError:
        sock.close()
        raise

    out.write("Connected.\n\n")
    return sock