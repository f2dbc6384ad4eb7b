"""Fetch a single resource over HTTPS and print headers and body."""

import enum
import ssl
import sys
import time
from dataclasses import dataclass
from itertools import takewhile

from cryptography import x509

from netprog.net import connect_to_host

TIMEOUT = 5.0
RESPONSE_SIZE = 32768
DEFAULT_PORT = "443"
USER_AGENT = "honpwc https_get 1.0"

_DIGIT_CHARS = {10: frozenset("0123456789"), 16: frozenset("0123456789abcdefABCDEF")}


class HttpsGetError(Exception):
    """The URL, the connection or the response could not be handled."""


@dataclass(frozen=True)
class ParsedUrl:
    hostname: str
    port: str
    path: str


class BodyEncoding(enum.Enum):
    LENGTH = "length"
    CHUNKED = "chunked"
    CONNECTION = "connection"


def _strtol(text, base):
    text = text.lstrip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if base == 16 and text[:2].lower() == "0x":
        text = text[2:]
    digits = "".join(takewhile(_DIGIT_CHARS[base].__contains__, text))
    return sign * int(digits, base) if digits else 0


def parse_url(url):
    """Split an ``https`` URL into host, port (default 443) and path.

    The scheme may be left out; any other scheme raises
    :class:`HttpsGetError`.  The path is returned without its leading slash
    and without any fragment.
    """
    protocol, sep, rest = url.partition("://")
    if not sep:
        rest = url
    elif protocol != "https":
        raise HttpsGetError(
            f"Unknown protocol '{protocol}'. Only 'https' is supported."
        )

    rest = rest.partition("#")[0]
    authority, _, path = rest.partition("/")
    hostname, colon, port = authority.partition(":")
    return ParsedUrl(hostname, port if colon else DEFAULT_PORT, path)


def build_request(hostname, port, path):
    """Return the GET request sent for ``path`` on ``hostname:port``."""
    return (
        f"GET /{path} HTTP/1.1\r\n"
        f"Host: {hostname}:{port}\r\n"
        "Connection: close\r\n"
        f"User-Agent: {USER_AGENT}\r\n"
        "\r\n"
    )


class BodyDecoder:
    """Incremental parser of an HTTP/1.1 response.

    Feed raw bytes as they arrive; each call returns the body bytes that
    became available.  The body framing is taken from Content-Length,
    chunked transfer encoding, or otherwise the end of the connection.
    """

    def __init__(self):
        self._data = bytearray()
        self._body = None
        self._remaining = 0
        self.headers = None
        self.encoding = None
        self.done = False

    @property
    def received(self):
        """Number of raw bytes taken in so far."""
        return len(self._data)

    def feed(self, data):
        """Take in ``data`` and return the body bytes it completes."""
        if self.done:
            return b""
        if len(self._data) + len(data) > RESPONSE_SIZE:
            raise HttpsGetError("out of buffer space")
        self._data += data

        if self._body is None:
            end = self._data.find(b"\r\n\r\n")
            if end < 0:
                return b""
            self.headers = self._data[:end].decode("latin-1")
            self._body = end + 4
            self._select_encoding()

        if self.encoding is BodyEncoding.LENGTH:
            return self._decode_length()
        if self.encoding is BodyEncoding.CHUNKED:
            return self._decode_chunks()
        return b""

    def finish(self):
        """Return what is left of a body delimited by the connection closing."""
        if self.encoding is BodyEncoding.CONNECTION and not self.done:
            self.done = True
            return bytes(self._data[self._body:])
        return b""

    def _select_encoding(self):
        marker = "\nContent-Length: "
        index = self.headers.find(marker)
        if index >= 0:
            self.encoding = BodyEncoding.LENGTH
            self._remaining = max(0, _strtol(self.headers[index + len(marker):], 10))
        elif "\nTransfer-Encoding: chunked" in self.headers:
            self.encoding = BodyEncoding.CHUNKED
            self._remaining = 0
        else:
            self.encoding = BodyEncoding.CONNECTION

    def _decode_length(self):
        if len(self._data) - self._body >= self._remaining:
            self.done = True
            return bytes(self._data[self._body:self._body + self._remaining])
        return b""

    def _decode_chunks(self):
        output = bytearray()
        while True:
            if self._remaining == 0:
                line_end = self._data.find(b"\r\n", self._body)
                if line_end < 0:
                    break
                size = _strtol(self._data[self._body:line_end].decode("latin-1"), 16)
                if size < 0:
                    raise HttpsGetError("invalid chunk size")
                if size == 0:
                    self.done = True
                    break
                self._remaining = size
                self._body = line_end + 2
            if len(self._data) - self._body < self._remaining:
                break
            output += self._data[self._body:self._body + self._remaining]
            self._body += self._remaining + 2
            self._remaining = 0
        return bytes(output)


def _oneline(name):
    return "".join(f"/{attr.rfc4514_attribute_name}={attr.value}" for attr in name)


def _report_tls(tls, out):
    out.write(f"SSL/TLS using {tls.cipher()[0]}\n")
    der = tls.getpeercert(binary_form=True)
    if not der:
        raise HttpsGetError("no peer certificate")
    cert = x509.load_der_x509_certificate(der)
    out.write(f"subject: {_oneline(cert.subject)}\n")
    out.write(f"issuer: {_oneline(cert.issuer)}\n")


def _emit(out, chunk, collected):
    if chunk:
        collected += chunk
        out.write(chunk.decode("utf-8", errors="replace"))


def _receive(tls, out, timeout):
    decoder = BodyDecoder()
    collected = bytearray()
    deadline = time.monotonic() + timeout

    while not decoder.done:
        left = deadline - time.monotonic()
        if left <= 0:
            raise HttpsGetError(f"timeout after {timeout:.2f} seconds")
        if decoder.received >= RESPONSE_SIZE:
            raise HttpsGetError("out of buffer space")

        tls.settimeout(left)
        try:
            data = tls.recv(RESPONSE_SIZE - decoder.received)
        except TimeoutError:
            continue
        except (ssl.SSLZeroReturnError, ssl.SSLEOFError):
            data = b""

        if not data:
            _emit(out, decoder.finish(), collected)
            out.write("\nConnection closed by peer.\n")
            break

        had_headers = decoder.headers is not None
        chunk = decoder.feed(data)
        if not had_headers and decoder.headers is not None:
            out.write(f"Received Headers:\n{decoder.headers}\n")
            out.write("\nReceived Body:\n")
        _emit(out, chunk, collected)

    return bytes(collected)


def fetch(url, out=None, timeout=TIMEOUT):
    """Fetch ``url`` over TLS, writing progress and body to ``out``.

    Returns the decoded body bytes.  The server certificate is shown but not
    verified.
    """
    out = sys.stdout if out is None else out
    out.write(f"URL: {url}\n")
    parsed = parse_url(url)
    out.write(f"hostname: {parsed.hostname}\n")
    out.write(f"port: {parsed.port}\n")
    out.write(f"path: {parsed.path}\n")

    sock = connect_to_host(parsed.hostname, parsed.port, out)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        tls = context.wrap_socket(sock, server_hostname=parsed.hostname)
    except BaseException:
        sock.close()
        raise

    with tls:
        _report_tls(tls, out)
        request = build_request(parsed.hostname, parsed.port, parsed.path)
        tls.sendall(request.encode("utf-8"))
        out.write(f"Sent Headers:\n{request}")
        body = _receive(tls, out, timeout)
        out.write("\nClosing socket...\n")

    out.write("Finished.\n")
    return body


def main(argv=None):
    """Fetch the URL given as the single argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("usage: web_get url", file=sys.stderr)
        return 1
    try:
        fetch(args[0])
    except (HttpsGetError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())