from __future__ import annotations

import platform
import socket
import socketserver
import threading

import pytest

from rediswire.config import Config


class FakeSocket:
    """
    Stand-in for a connected socket. Everything written is recorded in
    :attr:`sent` and :meth:`recv` serves the bytes queued with :meth:`queue`,
    at most :attr:`read_size` bytes at a time.
    """

    def __init__(self, read_size: int | None = None) -> None:
        self.read_size = read_size
        self.buffer = bytearray()
        self.sent: list[bytes] = []
        self.recv_sizes: list[int] = []
        self.options: dict[tuple[int, int], int | bytes] = {}
        self.timeout: float | None = None
        self.closed = False
        self.recv_error: BaseException | None = None
        self.send_error: BaseException | None = None
        self.connects: list[tuple[tuple[str, int], float | None]] = []

    def queue(self, data: bytes) -> None:
        self.buffer.extend(data)

    @property
    def written(self) -> bytes:
        return b"".join(self.sent)

    def settimeout(self, timeout: float | None) -> None:
        self.timeout = timeout

    def setsockopt(self, level: int, option: int, value: int | bytes) -> None:
        self.options[(level, option)] = value

    def sendall(self, data: bytes) -> None:
        if self.send_error:
            raise self.send_error
        self.sent.append(bytes(data))

    def recv(self, size: int) -> bytes:
        self.recv_sizes.append(size)
        if self.recv_error:
            raise self.recv_error
        if self.read_size is not None:
            size = min(size, self.read_size)
        chunk = bytes(self.buffer[:size])
        del self.buffer[:size]
        return chunk

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_socket(monkeypatch):
    sock = FakeSocket()

    def create_connection(address, timeout=None):
        sock.connects.append((address, timeout))
        sock.closed = False
        return sock

    monkeypatch.setattr(socket, "create_connection", create_connection)
    return sock


@pytest.fixture
def refuse_connections(monkeypatch):
    def _refuse(error: BaseException):
        def create_connection(address, timeout=None):
            raise error

        monkeypatch.setattr(socket, "create_connection", create_connection)

    return _refuse


def read_command(rfile) -> list[bytes] | None:
    """Parse one request the way a redis server would"""
    header = rfile.readline()
    if not header:
        return None
    assert header.startswith(b"*") and header.endswith(b"\r\n")
    args = []
    for _ in range(int(header[1:-2])):
        length_line = rfile.readline()
        assert length_line.startswith(b"$") and length_line.endswith(b"\r\n")
        length = int(length_line[1:-2])
        payload = rfile.read(length + 2)
        assert payload[-2:] == b"\r\n"
        args.append(payload[:-2])
    return args


class EchoHandler(socketserver.StreamRequestHandler):
    """Replies to every command with its arguments as an array of bulk strings"""

    def handle(self):
        while True:
            args = read_command(self.rfile)
            if args is None:
                return
            self.server.received.append(args)
            reply = [b"*%d\r\n" % len(args)]
            for arg in args:
                reply.append(b"$%d\r\n%s\r\n" % (len(arg), arg))
            self.wfile.write(b"".join(reply))


class EchoServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), EchoHandler)
        self.received: list[list[bytes]] = []


@pytest.fixture
def echo_server():
    server = EchoServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture(autouse=True)
def reset_config():
    yield
    Config.read_chunk_size = None
    Config.stream_timeout = None
    Config.connect_timeout = None


@pytest.fixture(autouse=True)
def check_os_constraints(request):
    for marker in request.node.iter_markers(name="os"):
        if marker.args[0].lower() != platform.system().lower():
            pytest.skip(f"Skipped for {platform.system()}")
