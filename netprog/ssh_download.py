"""Log in over SSH and download one file with the scp protocol."""

import dataclasses
import shlex
import sys
from dataclasses import dataclass

import paramiko

from netprog.ssh_session import (
    SshError,
    authenticate_interactive,
    connect,
    parse_port,
)

_ACK = b"\0"
_MAX_HEADER = 4096


@dataclass(frozen=True)
class ScpFile:
    """A file received over scp."""

    name: str
    size: int
    permissions: int
    data: bytes = b""


def parse_scp_header(line):
    """Parse an scp ``C<mode> <size> <name>`` file header line."""
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")
    line = line.rstrip("\n")
    if not line:
        raise SshError("scp: empty header")
    if line[0] in ("\x01", "\x02"):
        raise SshError(f"scp: {line[1:]}")
    if line[0] != "C":
        raise SshError(f"scp: expected a file, got {line!r}")
    parts = line[1:].split(" ", 2)
    if len(parts) != 3:
        raise SshError(f"scp: malformed header {line!r}")
    mode, size, name = parts
    try:
        return ScpFile(name, int(size), int(mode, 8))
    except ValueError as exc:
        raise SshError(f"scp: malformed header {line!r}") from exc


def _read_exact(channel, count):
    data = bytearray()
    while len(data) < count:
        chunk = channel.recv(count - len(data))
        if not chunk:
            raise SshError("scp: connection closed early")
        data += chunk
    return bytes(data)


def _read_line(channel):
    line = bytearray()
    while not line.endswith(b"\n"):
        if len(line) > _MAX_HEADER:
            raise SshError("scp: header too long")
        chunk = channel.recv(1)
        if not chunk:
            raise SshError("scp: connection closed early")
        line += chunk
    return bytes(line)


def scp_download(transport, remote_path):
    """Fetch ``remote_path`` from the server and return it as an :class:`ScpFile`."""
    try:
        channel = transport.open_session()
    except paramiko.SSHException as exc:
        raise SshError(f"Opening a session channel failed.\n{exc}") from exc
    try:
        channel.exec_command(f"scp -f {shlex.quote(remote_path)}")
        channel.sendall(_ACK)
        header = _read_line(channel)
        while header.startswith(b"T"):
            channel.sendall(_ACK)
            header = _read_line(channel)
        info = parse_scp_header(header)
        channel.sendall(_ACK)
        data = _read_exact(channel, info.size)
        status = _read_exact(channel, 1)
        if status != _ACK:
            raise SshError("scp: transfer failed")
        channel.sendall(_ACK)
        if channel.recv(1):
            raise SshError("scp: unexpected data after the file")
    except paramiko.SSHException as exc:
        raise SshError(f"scp failed.\n{exc}") from exc
    finally:
        channel.close()
    return dataclasses.replace(info, data=data)


def main(argv=None):
    """Connect to ``hostname port user``, log in and download a file named on input."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 3:
        print("Usage: ssh_download hostname port user", file=sys.stderr)
        return 1
    hostname, port, user = args[0], parse_port(args[1]), args[2]
    try:
        transport = connect(hostname, port)
    except SshError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        if not authenticate_interactive(transport, hostname, port, user):
            return 0
        sys.stdout.write("Remote file to download: ")
        sys.stdout.flush()
        filename = sys.stdin.readline()
        if filename.endswith("\n"):
            filename = filename[:-1]
        received = scp_download(transport, filename)
        print(
            f"Downloading file {received.name} ({received.size} bytes, "
            f"permissions 0{received.permissions:o})"
        )
        print(f"Received {filename}:")
        print(received.data.decode("utf-8", errors="replace"))
    except SshError as exc:
        print(exc, file=sys.stderr)
        return exc.exit_code
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        transport.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())