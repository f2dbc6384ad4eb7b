"""TLS server that answers every connection with the local time."""

import argparse
import socket
import ssl
import sys
from datetime import datetime

RESPONSE_HEAD = (
    "HTTP/1.1 200 OK\r\n"
    "Connection: close\r\n"
    "Content-Type: text/plain\r\n\r\n"
    "Local time is: "
)
REQUEST_SIZE = 1024


def _time_message(now):
    return (datetime.now() if now is None else now).ctime() + "\n"


def time_response(now=None):
    """Return the full response text announcing ``now`` (default: the current time)."""
    return RESPONSE_HEAD + _time_message(now)


def _send_counted(tls, text, out):
    data = text.encode("ascii")
    sent = tls.send(data)
    out.write(f"Sent {sent} of {len(data)} bytes.\n")


def _answer(tls, out):
    out.write(f"SSL connection using {tls.cipher()[0]}\n")
    out.write("Reading request...\n")
    try:
        request = tls.recv(REQUEST_SIZE)
    except OSError:
        request = b""
    out.write(f"Received {len(request)} bytes.\n")

    out.write("Sending response...\n")
    _send_counted(tls, RESPONSE_HEAD, out)
    _send_counted(tls, _time_message(None), out)
    out.write("Closing connection...\n")


def serve(certfile="cert.pem", keyfile="key.pem", host=None, port=8080,
          out=None, max_connections=None):
    """Accept TLS clients and send each the time.

    Runs forever unless ``max_connections`` is given; returns the number of
    connections accepted.
    """
    out = sys.stdout if out is None else out
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile, keyfile)

    out.write("Configuring local address...\n")
    family, socktype, proto, _, sockaddr = socket.getaddrinfo(
        host, str(port), socket.AF_INET, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
    )[0]

    out.write("Creating socket...\n")
    served = 0
    with socket.socket(family, socktype, proto) as listener:
        out.write("Binding socket to local address...\n")
        listener.bind(sockaddr)
        out.write("Listening...\n")
        listener.listen(10)

        while max_connections is None or served < max_connections:
            out.write("Waiting for connection...\n")
            sock, addr = listener.accept()
            served += 1
            out.write(f"Client is connected... {addr[0]}\n")
            try:
                tls = context.wrap_socket(sock, server_side=True)
            except (ssl.SSLError, OSError) as exc:
                print("SSL_accept() failed.", file=sys.stderr)
                print(exc, file=sys.stderr)
                sock.close()
                continue
            with tls:
                try:
                    _answer(tls, out)
                except OSError as exc:
                    print(exc, file=sys.stderr)

        out.write("Closing listening socket...\n")
    out.write("Finished.\n")
    return served


def main(argv=None):
    """Run the time server on port 8080 with ``cert.pem`` and ``key.pem``."""
    parser = argparse.ArgumentParser(prog="tls_time_server")
    parser.add_argument("--cert", default="cert.pem")
    parser.add_argument("--key", default="key.pem")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)
    try:
        serve(args.cert, args.key, None, args.port)
    except KeyboardInterrupt:
        return 0
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())