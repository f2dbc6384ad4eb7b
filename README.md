# netprog

A set of small network programs and the library functions behind them. Each
one shows a single protocol or a single piece of socket behaviour, and prints
what it is doing as it goes.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Commands

### Mail

`smtp-send` talks plain SMTP on port 25. It asks for the mail server, the
sender, the recipient and the subject, then reads the message body line by
line until a line holding only `.` (or the end of input, in which case the
`.` line is sent for you). Every line sent to the server is echoed with a
`C:` prefix and every reply with `S:`. A reply with an unexpected code, a
reply of 1024 bytes or more, or a dropped connection stops the session with
an error and exit status 1.

```
smtp-send
```

### HTTPS and TLS clients

```
https-get https://example.com/
https-simple example.com 443
tls-get-cert example.com 443
tls-client example.com 443
openssl-version
```

- `https-get` fetches one URL over HTTPS, prints the request and response
  headers, and decodes the body whether it is sized by `Content-Length`,
  sent in chunks, or ends when the server closes the connection. Only the
  `https` scheme is accepted (the scheme may also be left out); the port
  defaults to 443 and any `#fragment` is dropped. It gives up after five
  seconds, or when the response exceeds 32768 bytes.
- `https-simple` sends a bare `GET /` and prints every block of data as it
  arrives.
- `tls-get-cert` performs the handshake and prints the cipher in use and the
  subject and issuer of the server's certificate.
- `tls-client` is an interactive TLS terminal: lines typed on standard input
  are sent to the server and whatever comes back is printed. It stops when
  the server closes the connection or standard input ends.
- `openssl-version` prints the version of the TLS library in use.

All of these clients show the server's certificate but do not verify it.

### TLS servers

```
https-server [--root DIR] [--cert FILE] [--key FILE] [--port N]
tls-time-server [--cert FILE] [--key FILE] [--port N]
```

Both listen on port 8080 by default and load `cert.pem` and `key.pem` from
the working directory unless told otherwise.

`https-server` serves static files below its document root (`public` by
default), with `/` mapped to `/index.html` and a content type chosen by file
extension. It answers `400 Bad Request` to requests that are not
`GET /...`, to paths longer than 100 characters and to request heads of 2047
bytes or more, and `404 Not Found` to missing files and to paths containing
`..`. Every connection is closed after one response.

`tls-time-server` answers every connection with the server's local time as
plain text.

### SSH

```
ssh-connect example.com 22
ssh-auth example.com 22 alice
ssh-command example.com 22 alice
ssh-download example.com 22 alice
ssh-version
```

- `ssh-connect` connects, logs the protocol exchange to standard error and
  prints the server banner; the port is optional and defaults to 22.
- `ssh-auth` also prints the SHA-1 fingerprint of the host key, checks it
  against `~/.ssh/known_hosts`, offers to remember a host that is unknown,
  changed, known under another key type or missing from a non-existent file,
  and then logs in with a password read from standard input.
- `ssh-command` logs in the same way, asks for a command, runs it on the
  server and prints its output.
- `ssh-download` logs in the same way, asks for a remote file name and
  fetches that file with the scp protocol, printing its size, permissions
  and contents.
- `ssh-version` prints the version of the SSH library in use.

### Socket behaviour probes

```
connect-blocking example.com 80
connect-timeout example.com 80
big-send localhost 8080
error-text
setsize
server-crash [--port N]
server-ignore [--port N]
server-noreuse [--port N]
server-reuse [--port N]
```

- `connect-blocking` makes an ordinary connection.
- `connect-timeout` starts a non-blocking connection, waits up to five
  seconds for it, and reports whether a first one-byte send succeeds.
- `big-send` writes 10000 blocks of 10000 bytes, reporting before each one
  whether the socket is ready for writing; a partial send stops it.
- `error-text` creates a socket with invalid parameters and prints the
  system's description of the error.
- `setsize` prints the `select()` descriptor limit (1024, or 64 on Windows).
- `server-crash` waits for one client to disconnect, then tries sending to it
  twice to show how the failure is reported.
- `server-ignore` accepts connections and never answers them.
- `server-noreuse` and `server-reuse` accept and immediately close
  connections, without and with `SO_REUSEADDR`, so that restarting them
  shows the difference when binding the port again.

The servers listen on port 8080 by default.

## Library use

The parsing and formatting pieces work without a network:

```python
from datetime import datetime, timezone

from netprog.https_get import BodyDecoder, build_request, parse_url
from netprog.https_server import get_content_type, parse_request_path
from netprog.smtp_send import compose_headers, parse_response
from netprog.ssh_download import parse_scp_header

parse_response("250 OK\r\n")              # 250
parse_response("250-first line\r\n")      # 0, the reply is not complete yet

compose_headers("alice@example.com", "bob@example.com", "Hello",
                datetime(2024, 1, 1, tzinfo=timezone.utc))
# ['From:<alice@example.com>\r\n', 'To:<bob@example.com>\r\n',
#  'Subject:Hello\r\n', 'Date:Mon, 01 Jan 2024 00:00:00 +0000\r\n', '\r\n']

url = parse_url("https://example.com:8443/docs#intro")
# ParsedUrl(hostname='example.com', port='8443', path='docs')
request = build_request(url.hostname, url.port, url.path)

decoder = BodyDecoder()
decoder.feed(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello")  # b'hello'

get_content_type("/index.html")           # "text/html"
get_content_type("/archive.tar")          # "application/octet-stream"
parse_request_path("GET /a.txt HTTP/1.1\r\n\r\n")   # "/a.txt"

parse_scp_header("C0644 12 notes.txt\n")
# ScpFile(name='notes.txt', size=12, permissions=420, data=b'')
```

The network functions (`netprog.net.connect_to_host`,
`netprog.https_get.fetch`, `netprog.tls_inspect.get_certificate`,
`netprog.https_server.HttpsServer`, `netprog.tls_time_server.serve`,
`netprog.ssh_session.connect`, `netprog.ssh_command.run_command`,
`netprog.ssh_download.scp_download` and the probes in
`netprog.client_probes` and `netprog.server_probes`) take an `out` argument
for their progress messages, standard output by default.

## What it does not do

- The SMTP sender speaks plain SMTP only: no STARTTLS and no login.
- The TLS clients never verify the server's certificate or host name.
- The HTTPS server answers only `GET` requests for static files, one per
  connection.
- The SSH commands log in with a password only; keys and agents are not used.