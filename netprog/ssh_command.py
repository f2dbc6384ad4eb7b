"""Log in over SSH and run one command, printing its output."""

import sys

import paramiko

from netprog.ssh_session import (
    SshError,
    authenticate_interactive,
    connect,
    parse_port,
)

READ_SIZE = 1024


def run_command(transport, command, out=None):
    """Run ``command`` on a session channel and echo its output to ``out``.

    Returns the output bytes.
    """
    out = sys.stdout if out is None else out
    try:
        channel = transport.open_session()
    except paramiko.SSHException as exc:
        raise SshError(f"Opening a session channel failed.\n{exc}") from exc

    output = bytearray()
    try:
        try:
            channel.exec_command(command)
        except paramiko.SSHException as exc:
            raise SshError(f"Executing the command failed.\n{exc}") from exc
        while True:
            data = channel.recv(READ_SIZE)
            if not data:
                break
            output += data
            out.write(data.decode("utf-8", errors="replace"))
        out.write("\n")
        channel.shutdown_write()
    finally:
        channel.close()
    return bytes(output)


def main(argv=None):
    """Connect to ``hostname port user``, log in and run a command read from input."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 3:
        print("Usage: ssh_command hostname port user", file=sys.stderr)
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
        sys.stdout.write("Remote command to execute: ")
        sys.stdout.flush()
        command = sys.stdin.readline()
        if command.endswith("\n"):
            command = command[:-1]
        run_command(transport, command)
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