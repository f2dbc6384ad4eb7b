[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netprog"
version = "0.1.0"
description = "Small network programs: SMTP sending, HTTPS and TLS clients and servers, SSH sessions and socket behaviour probes"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
    "paramiko",
]
keywords = [
    "networking",
    "sockets",
    "smtp",
    "https",
    "tls",
    "ssh",
    "scp",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Communications :: Email",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Security :: Cryptography",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
smtp-send = "netprog.smtp_send:main"
https-get = "netprog.https_get:main"
https-simple = "netprog.tls_inspect:main_simple"
tls-get-cert = "netprog.tls_inspect:main_get_cert"
openssl-version = "netprog.tls_inspect:main_version"
tls-client = "netprog.tls_client:main"
https-server = "netprog.https_server:main"
tls-time-server = "netprog.tls_time_server:main"
ssh-connect = "netprog.ssh_session:main_connect"
ssh-auth = "netprog.ssh_session:main_auth"
ssh-version = "netprog.ssh_session:main_version"
ssh-command = "netprog.ssh_command:main"
ssh-download = "netprog.ssh_download:main"
big-send = "netprog.client_probes:main_big_send"
connect-blocking = "netprog.client_probes:main_connect_blocking"
connect-timeout = "netprog.client_probes:main_connect_timeout"
error-text = "netprog.client_probes:main_error_text"
setsize = "netprog.client_probes:main_setsize"
server-crash = "netprog.server_probes:main_crash"
server-ignore = "netprog.server_probes:main_ignore"
server-noreuse = "netprog.server_probes:main_noreuse"
server-reuse = "netprog.server_probes:main_reuse"

[tool.hatch.build.targets.wheel]
packages = ["netprog"]

[tool.hatch.build.targets.sdist]
include = [
    "netprog",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
