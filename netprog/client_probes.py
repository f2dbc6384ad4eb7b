"""Small client programs that show how sockets behave at the edges."""

import errno
import os
import select
import socket
import sys

from netprog.net import format_peer

DEFAULT_SEND_SIZE = 10000
DEFAULT_SEND_COUNT = 10000
CONNECT_TIMEOUT = 5.0

_IN_PROGRESS = frozenset(
    code
    for code in (
        errno.EINPROGRESS,
        errno.EWOULDBLOCK,
        errno.EAGAIN,
        getattr(errno, "WSAEWOULDBLOCK", None),
    )
    if code is not None
)


def get_error_text(err):
    """Return the system's description of ``err``, an errno value or an OSError."""
    if isinstance(err, OSError):
        if err.strerror:
            return err.strerror
        if err.errno is not None:
            return os.strerror(err.errno)
        return str(err)
    return os.strerror(err)


def fd_setsize():
    """Return the highest descriptor count ``select()`` handles on this platform."""
    return 64 if sys.platform == "win32" else 1024


def _open(hostname, port, out):
    out.write("Configuring remote address...\n")
    family, socktype, proto, _, sockaddr = socket.getaddrinfo(
        hostname, str(port), type=socket.SOCK_STREAM
    )[0]
    out.write(f"Remote address is: {format_peer(sockaddr)}\n")
    out.write("Creating socket...\n")
    return socket.socket(family, socktype, proto), sockaddr


def _connect(hostname, port, out):
    sock, sockaddr = _open(hostname, port, out)
    out.write("Connecting...\n")
    try:
        sock.connect(sockaddr)
    except OSError:
        sock.close()
        raise
    out.write("Connected.\n")
    return sock


def big_send(hostname, port, out=None, count=DEFAULT_SEND_COUNT,
             size=DEFAULT_SEND_SIZE):
    """Send ``count`` blocks of ``size`` bytes, reporting write readiness first.

    Returns the number of bytes sent.  A send that takes only part of a block
    raises :class:`OSError`.
    """
    out = sys.stdout if out is None else out
    total = 0
    with _connect(hostname, port, out) as sock:
        out.write("Sending lots of data.\n")
        block = bytes(size)
        for i in range(1, count + 1):
            _, writable, _ = select.select([], [sock], [], 0)
            if writable:
                out.write("Socket is ready to write.\n")
            else:
                out.write("Socket is not ready to write.\n")

            out.write(f"Sending {size} bytes ({i * size} total).\n")
            sent = sock.send(block)
            if sent != size:
                raise OSError(f"send() only consumed {sent} bytes.")
            total += sent
        out.write("Closing socket...\n")
    out.write("Finished.\n")
    return total


def connect_blocking(hostname, port, out=None):
    """Connect with an ordinary blocking call and return the peer address."""
    out = sys.stdout if out is None else out
    with _connect(hostname, port, out) as sock:
        peer = sock.getpeername()
        out.write("Closing socket...\n")
    out.write("Finished.\n")
    return peer


def connect_timeout(hostname, port, out=None, timeout=CONNECT_TIMEOUT):
    """Start a non-blocking connect, wait up to ``timeout`` seconds, then test it.

    Returns ``True`` when a first one-byte send succeeds.  A connect that
    fails at once raises :class:`OSError`.
    """
    out = sys.stdout if out is None else out
    sock, sockaddr = _open(hostname, port, out)
    with sock:
        sock.setblocking(False)
        out.write("Connecting...\n")
        ret = sock.connect_ex(sockaddr)
        if ret and ret not in _IN_PROGRESS:
            raise OSError(ret, os.strerror(ret))
        sock.setblocking(True)

        if ret == 0:
            out.write("Already connected.\n")
            out.write("Perhaps non-blocking failed?\n")
        else:
            out.write(f"Waiting up to {timeout:g} seconds for connection...\n")
            select.select([], [sock], [], timeout)

        out.write("Testing for connection...\n")
        try:
            sock.send(b"a")
        except OSError:
            connected = False
            out.write("First send() failed. Connection was not successful.\n")
        else:
            connected = True
            out.write("First send() succeeded. Connection was successful.\n")
        out.write("Closing socket...\n")
    out.write("Finished.\n")
    return connected


def error_text_demo(out=None):
    """Create a socket with invalid parameters and report the resulting error text."""
    out = sys.stdout if out is None else out
    out.write("Calling socket() with invalid parameters.\n")
    try:
        sock = socket.socket(0, 0, 0)
    except OSError as exc:
        text = get_error_text(exc)
    else:
        sock.close()
        text = os.strerror(0)
    out.write(f"Last error was: {text}\n")
    out.write("Finished.\n")
    return text


def _host_port(argv, usage):
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print(usage, file=sys.stderr)
        return None
    return args[0], args[1]


def _run(argv, usage, probe):
    target = _host_port(argv, usage)
    if target is None:
        return 1
    try:
        probe(*target)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


def main_big_send(argv=None):
    """Flood ``hostname port`` with data."""
    return _run(argv, "usage: big_send hostname port", big_send)


def main_connect_blocking(argv=None):
    """Connect to ``hostname port`` with a blocking connect."""
    return _run(argv, "usage: connect_blocking hostname port", connect_blocking)


def main_connect_timeout(argv=None):
    """Connect to ``hostname port`` with a bounded wait."""
    return _run(argv, "usage: connect_timeout hostname port", connect_timeout)


def main_error_text(argv=None):
    """Show the text of a socket error."""
    error_text_demo()
    return 0


def main_setsize(argv=None):
    """Print the select() descriptor limit."""
    print(f"FD_SETSIZE is {fd_setsize()}.")
    return 0


if __name__ == "__main__":
    sys.exit(main_connect_blocking())