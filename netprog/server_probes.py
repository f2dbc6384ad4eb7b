"""Small listening servers that show how sockets behave at the edges."""

import argparse
import socket
import sys

DEFAULT_PORT = 8080
BACKLOG = 10
READ_SIZE = 1024


def open_listener(host=None, port=DEFAULT_PORT, reuse=False, out=None):
    """Create an IPv4 TCP socket bound to ``host:port`` and listening.

    With ``reuse`` the address is marked reusable before binding; a failure
    to set that option is reported and otherwise ignored.  Bind and listen
    failures propagate as :class:`OSError`.
    """
    out = sys.stdout if out is None else out
    out.write("Configuring local address...\n")
    family, socktype, proto, _, sockaddr = socket.getaddrinfo(
        host, str(port), socket.AF_INET, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
    )[0]

    out.write("Creating socket...\n")
    listener = socket.socket(family, socktype, proto)
    try:
        out.write("Binding socket to local address...\n")
        if reuse:
            try:
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as exc:
                print(f"setsockopt() failed. ({exc})", file=sys.stderr)
        listener.bind(sockaddr)
        out.write("Listening...\n")
        listener.listen(BACKLOG)
    except BaseException:
        listener.close()
        raise
    return listener


def _accept(listener, out):
    out.write("Waiting for connection...\n")
    client, _ = listener.accept()
    out.write("Client is connected.\n")
    return client


def _try_send(sock, which):
    try:
        sent = sock.send(b"a")
    except OSError as exc:
        print(f"{which} send() failed. ({exc})", file=sys.stderr)
        return False
    if sent != 1:
        print(f"{which} send() failed. ({sent})", file=sys.stderr)
        return False
    return True


def server_crash(listener, out=None):
    """Accept one client, read until it disconnects, then send to it twice.

    Returns ``(received, sends)``: the total bytes read from the client and a
    pair of booleans telling whether each of the two sends succeeded.
    """
    out = sys.stdout if out is None else out
    client = _accept(listener, out)
    with client:
        out.write("Waiting for client to disconnect.\n")
        received = 0
        while True:
            try:
                data = client.recv(READ_SIZE)
            except OSError:
                last = -1
                break
            if not data:
                last = 0
                break
            received += len(data)
            out.write(f"Received {len(data)} bytes.\n")

        out.write("Client has disconnected.\n")
        out.write(f"recv() returned {last}\n")

        out.write("Attempting to send first data.\n")
        first = _try_send(client, "first")
        out.write("Attempting to send second data.\n")
        second = _try_send(client, "second")

        out.write("Closing socket.\n")
    out.write("Finished.\n")
    return received, (first, second)


def server_ignore(listener, out=None, max_clients=None):
    """Accept clients and leave their connections open without serving them.

    Runs forever unless ``max_clients`` is given; returns the accepted
    client sockets, which the caller owns.
    """
    out = sys.stdout if out is None else out
    clients = []
    while max_clients is None or len(clients) < max_clients:
        clients.append(_accept(listener, out))
    return clients


def server_close_each(listener, out=None, max_clients=None):
    """Accept clients and close each connection at once.

    Runs forever unless ``max_clients`` is given; returns the number of
    clients accepted.
    """
    out = sys.stdout if out is None else out
    served = 0
    while max_clients is None or served < max_clients:
        client = _accept(listener, out)
        client.close()
        served += 1
    return served


def _parse(argv, prog):
    parser = argparse.ArgumentParser(prog=prog)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser.parse_args(argv)


def _run(argv, prog, reuse, action):
    args = _parse(argv, prog)
    try:
        with open_listener(None, args.port, reuse) as listener:
            action(listener)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


def main_crash(argv=None):
    """Serve one client and write to it after it has gone."""
    return _run(argv, "server_crash", False, server_crash)


def _ignore_forever(listener):
    clients = []
    try:
        clients = server_ignore(listener)
    finally:
        for client in clients:
            client.close()


def main_ignore(argv=None):
    """Accept clients and never answer them."""
    return _run(argv, "server_ignore", False, _ignore_forever)


def main_noreuse(argv=None):
    """Accept and close clients without marking the address reusable."""
    return _run(argv, "server_noreuse", False, server_close_each)


def main_reuse(argv=None):
    """Accept and close clients on a reusable address."""
    return _run(argv, "server_reuse", True, server_close_each)


if __name__ == "__main__":
    sys.exit(main_reuse())