"""Small network programs: SMTP, HTTPS and TLS, SSH, and socket behaviour probes."""

__version__ = "0.1.0"