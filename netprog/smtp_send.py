"""Interactive sender of a single plain-text e-mail over SMTP."""

import re
import sys
from datetime import datetime, timezone

from netprog.net import connect_to_host

MAX_RESPONSE = 1024
SMTP_PORT = "25"

_DIGITS = frozenset("0123456789")
_LEADING_DIGITS = re.compile(r"[0-9]+")
_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class SmtpError(Exception):
    """The server dropped the connection or answered with the wrong code."""

    def __init__(self, message, code=0, response=""):
        super().__init__(message)
        self.code = code
        self.response = response


def parse_response(response):
    """Return the code of a complete SMTP reply, or 0 if it is not complete yet.

    A reply is complete once a line starts with three digits not followed by
    ``-`` and a CRLF follows somewhere after it.
    """
    for k in range(len(response) - 3):
        if k and response[k - 1] != "\n":
            continue
        if not _DIGITS.issuperset(response[k:k + 3]):
            continue
        if response[k + 3] == "-":
            continue
        if "\r\n" in response[k:]:
            return int(_LEADING_DIGITS.match(response, k).group())
    return 0


class SmtpSession:
    """A connected SMTP socket that echoes the dialogue to ``out``."""

    def __init__(self, sock, out=None):
        self.sock = sock
        self.out = sys.stdout if out is None else out

    def send(self, text):
        """Send ``text`` as is and echo it with a ``C:`` prefix."""
        self.sock.sendall(text.encode("utf-8"))
        self.out.write(f"C: {text}")

    def expect(self, expecting):
        """Read one complete reply and check that its code is ``expecting``."""
        received = bytearray()
        code = 0
        response = ""
        while code == 0:
            chunk = self.sock.recv(MAX_RESPONSE - len(received))
            if not chunk:
                raise SmtpError("Connection dropped.")
            received += chunk
            response = received.decode("latin-1")
            if len(received) >= MAX_RESPONSE:
                raise SmtpError("Server response too large:", response=response)
            code = parse_response(response)

        if code != expecting:
            raise SmtpError("Error from server:", code=code, response=response)

        self.out.write(f"S: {response}")
        return code


def format_date(when=None):
    """Format ``when`` (default: now) as an RFC 5322 date in UTC."""
    if when is None:
        when = datetime.now(timezone.utc)
    elif when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    utc = when.astimezone(timezone.utc)
    return (
        f"{_DAYS[utc.weekday()]}, {utc.day:02d} {_MONTHS[utc.month - 1]} "
        f"{utc.year} {utc:%H:%M:%S} +0000"
    )


def compose_headers(sender, recipient, subject, when=None):
    """Return the message header lines, each ending in CRLF, and the blank line."""
    return [
        f"From:<{sender}>\r\n",
        f"To:<{recipient}>\r\n",
        f"Subject:{subject}\r\n",
        f"Date:{format_date(when)}\r\n",
        "\r\n",
    ]


def _greet(session):
    session.expect(220)
    session.send("HELO HONPWC\r\n")
    session.expect(250)


def _mail_from(session, sender):
    session.send(f"MAIL FROM:<{sender}>\r\n")
    session.expect(250)


def _rcpt_to(session, recipient):
    session.send(f"RCPT TO:<{recipient}>\r\n")
    session.expect(250)


def _begin_data(session):
    session.send("DATA\r\n")
    session.expect(354)


def _send_headers(session, headers):
    for header in headers:
        session.send(header)


def _send_body(session, body_lines):
    for line in body_lines:
        session.send(f"{line}\r\n")
        if line == ".":
            break
    else:
        session.send(".\r\n")
    session.expect(250)


def _quit(session):
    session.send("QUIT\r\n")
    session.expect(221)


def send_mail(session, sender, recipient, subject, body_lines, when=None):
    """Run a whole SMTP dialogue on ``session``, from greeting to QUIT.

    The body ends at a line holding a single ``.``; if ``body_lines`` runs out
    first, that line is sent for it.
    """
    _greet(session)
    _mail_from(session, sender)
    _rcpt_to(session, recipient)
    _begin_data(session)
    _send_headers(session, compose_headers(sender, recipient, subject, when))
    _send_body(session, body_lines)
    _quit(session)


def _get_input(prompt):
    sys.stdout.write(prompt)
    sys.stdout.flush()
    line = sys.stdin.readline()
    if not line:
        return None
    return line[:-1] if line.endswith("\n") else line


def _read_body():
    while True:
        line = _get_input("> ")
        if line is None:
            return
        yield line


def main(argv=None):
    """Prompt for server, addresses, subject and text, then send the mail."""
    try:
        hostname = _get_input("mail server: ") or ""
        print(f"Connecting to host: {hostname}:{SMTP_PORT}")

        with connect_to_host(hostname, SMTP_PORT) as sock:
            session = SmtpSession(sock)
            _greet(session)

            sender = _get_input("from: ") or ""
            _mail_from(session, sender)

            recipient = _get_input("to: ") or ""
            _rcpt_to(session, recipient)

            _begin_data(session)

            subject = _get_input("subject: ") or ""
            _send_headers(session, compose_headers(sender, recipient, subject))

            print('Enter your email text, end with "." on a line by itself.')
            _send_body(session, _read_body())
            _quit(session)

            print("\nClosing socket...")
    except SmtpError as exc:
        print(exc, file=sys.stderr)
        if exc.response:
            sys.stderr.write(exc.response)
        return 1
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1

    print("Finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())