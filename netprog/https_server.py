"""Minimal HTTPS file server for a directory of static files."""

import argparse
import selectors
import socket
import ssl
import sys
import threading
from dataclasses import dataclass, field

MAX_REQUEST_SIZE = 2047
MAX_PATH_LENGTH = 100
POLL_INTERVAL = 0.2
DEFAULT_TYPE = "application/octet-stream"

BAD_REQUEST = (
    b"HTTP/1.1 400 Bad Request\r\n"
    b"Connection: close\r\n"
    b"Content-Length: 11\r\n\r\nBad Request"
)
NOT_FOUND = (
    b"HTTP/1.1 404 Not Found\r\n"
    b"Connection: close\r\n"
    b"Content-Length: 9\r\n\r\nNot Found"
)

_CONTENT_TYPES = {
    ".css": "text/css",
    ".csv": "text/csv",
    ".gif": "image/gif",
    ".htm": "text/html",
    ".html": "text/html",
    ".ico": "image/x-icon",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".svg": "image/svg+xml",
    ".txt": "text/plain",
}


class RequestError(Exception):
    """The request is not a well-formed ``GET /...`` request."""


def get_content_type(path):
    """Return the media type for ``path``, judged by the text after its last dot."""
    dot = path.rfind(".")
    if dot < 0:
        return DEFAULT_TYPE
    return _CONTENT_TYPES.get(path[dot:], DEFAULT_TYPE)


def parse_request_path(request):
    """Return the path of a ``GET`` request head, or raise :class:`RequestError`."""
    if isinstance(request, (bytes, bytearray)):
        request = bytes(request).decode("latin-1")
    head = request.partition("\r\n\r\n")[0]
    if not head.startswith("GET /"):
        raise RequestError("only GET requests for absolute paths are supported")
    path, space, _ = head[4:].partition(" ")
    if not space:
        raise RequestError("request line has no protocol version")
    return path


def _create_listener(host, port, out):
    out.write("Configuring local address...\n")
    family, socktype, proto, _, sockaddr = socket.getaddrinfo(
        host, str(port), socket.AF_INET, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
    )[0]
    out.write("Creating socket...\n")
    listener = socket.socket(family, socktype, proto)
    try:
        out.write("Binding socket to local address...\n")
        listener.bind(sockaddr)
        out.write("Listening...\n")
        listener.listen(10)
    except BaseException:
        listener.close()
        raise
    return listener


@dataclass(eq=False)
class _Client:
    sock: ssl.SSLSocket
    address: str
    request: bytearray = field(default_factory=bytearray)


class HttpsServer:
    """Serves files below ``root`` over TLS, one request per connection."""

    def __init__(self, root="public", certfile="cert.pem", keyfile="key.pem",
                 host=None, port=8080, out=None):
        self.root = str(root)
        self.out = sys.stdout if out is None else out
        self._context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self._context.load_cert_chain(certfile, keyfile)
        self._listener = _create_listener(host, port, self.out)
        self.address = self._listener.getsockname()
        self._clients = set()
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ, None)
        self._closing = threading.Event()
        self._serving = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def handle_request(self, path):
        """Return the complete response bytes for a request of ``path``."""
        if path == "/":
            path = "/index.html"
        if len(path) > MAX_PATH_LENGTH:
            return BAD_REQUEST
        if ".." in path:
            return NOT_FOUND

        full_path = self.root + path
        try:
            with open(full_path, "rb") as resource:
                body = resource.read()
        except OSError:
            return NOT_FOUND

        head = (
            "HTTP/1.1 200 OK\r\n"
            "Connection: close\r\n"
            f"Content-Length: {len(body)}\r\n"
            f"Content-Type: {get_content_type(full_path)}\r\n"
            "\r\n"
        )
        return head.encode("ascii") + body

    def serve_forever(self):
        """Accept and answer clients until :meth:`close` is called."""
        self._serving = True
        try:
            while not self._closing.is_set():
                pending = [c for c in self._clients if c.sock.pending()]
                events = self._selector.select(0 if pending else POLL_INTERVAL)
                ready = [key.data for key, _ in events]
                if None in ready:
                    self._accept()
                for client in {*ready, *pending}:
                    if client is not None and client in self._clients:
                        self._read(client)
        finally:
            self._serving = False
            self._shutdown()

    def close(self):
        """Stop serving and close the listening and client sockets."""
        self._closing.set()
        if not self._serving:
            self._shutdown()

    def _shutdown(self):
        if self._selector is None:
            return
        for client in list(self._clients):
            self._drop(client)
        self._selector.close()
        self._selector = None
        self._listener.close()

    def _accept(self):
        sock, addr = self._listener.accept()
        try:
            tls = self._context.wrap_socket(sock, server_side=True)
        except (ssl.SSLError, OSError) as exc:
            print(exc, file=sys.stderr)
            sock.close()
            return
        client = _Client(tls, addr[0])
        self.out.write(f"New connection from {client.address}.\n")
        self.out.write(f"SSL connection using {tls.cipher()[0]}\n")
        self._clients.add(client)
        self._selector.register(tls, selectors.EVENT_READ, client)

    def _read(self, client):
        if len(client.request) >= MAX_REQUEST_SIZE:
            self._respond(client, BAD_REQUEST)
            return
        try:
            data = client.sock.recv(MAX_REQUEST_SIZE - len(client.request))
        except OSError:
            data = b""
        if not data:
            self.out.write(f"Unexpected disconnect from {client.address}.\n")
            self._drop(client)
            return

        client.request += data
        end = client.request.find(b"\r\n\r\n")
        if end < 0:
            return
        try:
            path = parse_request_path(client.request[:end])
        except RequestError:
            self._respond(client, BAD_REQUEST)
            return
        self.out.write(f"serve_resource {client.address} {path}\n")
        self._respond(client, self.handle_request(path))

    def _respond(self, client, response):
        try:
            client.sock.sendall(response)
        except OSError:
            pass
        self._drop(client)

    def _drop(self, client):
        self._clients.discard(client)
        if self._selector is not None:
            try:
                self._selector.unregister(client.sock)
            except (KeyError, ValueError):
                pass
        client.sock.close()


def main(argv=None):
    """Serve a directory over HTTPS until interrupted."""
    parser = argparse.ArgumentParser(prog="https_server")
    parser.add_argument("--root", default="public")
    parser.add_argument("--cert", default="cert.pem")
    parser.add_argument("--key", default="key.pem")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)

    try:
        server = HttpsServer(args.root, args.cert, args.key, None, args.port)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    print("\nClosing socket...")
    print("Finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())