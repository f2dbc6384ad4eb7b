"""Open SSH sessions, check the host key against known hosts and log in."""

import base64
import enum
import hashlib
import logging
import os
import re
import socket
import sys

import paramiko

DEFAULT_PORT = 22
DEFAULT_KNOWN_HOSTS = os.path.join("~", ".ssh", "known_hosts")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SshError(Exception):
    """An SSH step failed; ``exit_code`` is what the command exits with."""

    def __init__(self, message, exit_code=1):
        super().__init__(message)
        self.exit_code = exit_code


class KnownHostState(enum.Enum):
    """How the server's key relates to the known-hosts file."""

    OK = "Host Known."
    CHANGED = "Host Changed."
    OTHER = "Host Other."
    UNKNOWN = "Host Unknown."
    NOT_FOUND = "No host file."
    ERROR = "Host error."


_NEEDS_CONFIRMATION = frozenset(
    {
        KnownHostState.CHANGED,
        KnownHostState.OTHER,
        KnownHostState.UNKNOWN,
        KnownHostState.NOT_FOUND,
    }
)


def parse_port(text):
    """Read a port number the lenient way: leading integer, otherwise 0."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def format_fingerprint(digest):
    """Render a SHA-1 key digest as ``SHA1:`` and unpadded base64."""
    return "SHA1:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def fingerprint(key):
    """Return the SHA-1 fingerprint of a public key."""
    return format_fingerprint(hashlib.sha1(key.asbytes()).digest())


def _host_entry_name(hostname, port):
    return hostname if port == DEFAULT_PORT else f"[{hostname}]:{port}"


def known_host_state(host_keys, hostname, port, key):
    """Compare ``key`` with the entries of ``host_keys`` for ``hostname:port``.

    ``host_keys`` is a :class:`paramiko.HostKeys`, or ``None`` when there is
    no known-hosts file at all.
    """
    if host_keys is None:
        return KnownHostState.NOT_FOUND
    entry = host_keys.lookup(_host_entry_name(hostname, port))
    if entry is None:
        return KnownHostState.UNKNOWN
    keytype = key.get_name()
    if keytype in entry:
        if entry[keytype].asbytes() == key.asbytes():
            return KnownHostState.OK
        return KnownHostState.CHANGED
    return KnownHostState.OTHER


def connect(hostname, port=DEFAULT_PORT, out=None):
    """Connect to an SSH server, run the key exchange and return the transport."""
    out = sys.stdout if out is None else out
    try:
        sock = socket.create_connection((hostname, port))
    except OSError as exc:
        raise SshError(f"ssh_connect() failed.\n{exc}") from exc

    transport = paramiko.Transport(sock)
    try:
        transport.start_client()
    except (paramiko.SSHException, OSError, EOFError) as exc:
        transport.close()
        raise SshError(f"ssh_connect() failed.\n{exc}") from exc

    out.write(f"Connected to {hostname} on port {port}.\n")
    out.write(f"Banner:\n{transport.remote_version}\n")
    return transport


def _load_host_keys(path):
    if not os.path.exists(path):
        return None
    try:
        return paramiko.HostKeys(path)
    except (OSError, paramiko.SSHException, ValueError) as exc:
        raise SshError(f"Host error. {exc}") from exc


def _remember_host(host_keys, path, hostname, port, key):
    if host_keys is None:
        host_keys = paramiko.HostKeys()
    host_keys.add(_host_entry_name(hostname, port), key.get_name(), key)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    host_keys.save(path)


def _read_line(stdin):
    line = stdin.readline()
    return line[:-1] if line.endswith("\n") else line


def authenticate_interactive(transport, hostname, port, user,
                             known_hosts_path=None, stdin=None, out=None):
    """Show and check the host key, then log in with a password read from ``stdin``.

    Returns ``True`` once authenticated and ``False`` when the user declines
    to trust the host.  A failed login raises :class:`SshError`.
    """
    stdin = sys.stdin if stdin is None else stdin
    out = sys.stdout if out is None else out
    path = os.path.expanduser(known_hosts_path or DEFAULT_KNOWN_HOSTS)

    key = transport.get_remote_server_key()
    out.write("Host public key hash:\n")
    out.write(f"{fingerprint(key)}\n")

    out.write("Checking known hosts...\n")
    try:
        host_keys = _load_host_keys(path)
    except SshError as exc:
        out.write(f"{exc}\n")
        raise
    state = known_host_state(host_keys, hostname, port, key)
    out.write(f"{state.value}\n")

    if state in _NEEDS_CONFIRMATION:
        out.write("Do you want to accept and remember this host? Y/N\n")
        out.flush()
        answer = stdin.readline()
        if answer[:1] not in ("Y", "y"):
            return False
        _remember_host(host_keys, path, hostname, port, key)

    out.write("Password: ")
    out.flush()
    password = _read_line(stdin)
    try:
        transport.auth_password(user, password)
    except paramiko.SSHException as exc:
        raise SshError(f"Password authentication failed.\n{exc}", exit_code=0) from exc
    if not transport.is_authenticated():
        raise SshError("Password authentication failed.", exit_code=0)

    out.write("Authentication successful!\n")
    return True


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def main_connect(argv=None):
    """Connect to ``hostname [port]`` with protocol logging and show the banner."""
    args = _args(argv)
    if not args:
        print("Usage: ssh_connect hostname port", file=sys.stderr)
        return 1
    hostname = args[0]
    port = parse_port(args[1]) if len(args) > 1 else DEFAULT_PORT

    handler = logging.StreamHandler(sys.stderr)
    logger = logging.getLogger("paramiko")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        transport = connect(hostname, port)
    except SshError as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        logger.removeHandler(handler)
    transport.close()
    return 0


def main_auth(argv=None):
    """Connect to ``hostname port user``, check the host and log in."""
    args = _args(argv)
    if len(args) < 3:
        print("Usage: ssh_auth hostname port user", file=sys.stderr)
        return 1
    hostname, port, user = args[0], parse_port(args[1]), args[2]
    try:
        transport = connect(hostname, port)
    except SshError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        authenticate_interactive(transport, hostname, port, user)
    except SshError as exc:
        print(exc, file=sys.stderr)
        return exc.exit_code
    finally:
        transport.close()
    return 0


def main_version(argv=None):
    """Print the version of the SSH library in use."""
    version = getattr(paramiko, "__version__", "")
    if not version:
        print("SSH library version unavailable.", file=sys.stderr)
        return 1
    print(f"paramiko version: {version}")
    return 0


if __name__ == "__main__":
    sys.exit(main_auth())