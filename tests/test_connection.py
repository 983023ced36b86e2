from __future__ import annotations

import logging
import socket
import threading

import pytest

from rediswire import Connection, UnixDomainSocketConnection
from rediswire.connection import BaseConnection
from rediswire.config import Config
from rediswire.exceptions import (
    AuthenticationError,
    ConnectionError,
    InvalidCommandError,
    ProtocolError,
    ServerError,
    TimeoutError,
    WrongTypeError,
)
from rediswire.response.types import NULL_BULK_STRING, Array, BulkString, Integer, SimpleString


def test_repr():
    conn = Connection()
    assert conn.host == "127.0.0.1"
    assert conn.port == 6379
    assert repr(conn) == "Connection<host=127.0.0.1,port=6379>"
    assert repr(UnixDomainSocketConnection("/tmp/redis.sock")) == (
        "UnixDomainSocketConnection<path=/tmp/redis.sock>"
    )


def test_connect(fake_socket):
    conn = Connection("redis.local", 6380, stream_timeout=12, connect_timeout=1.5)
    assert not conn.is_connected
    conn.connect()
    assert conn.is_connected
    assert fake_socket.connects == [(("redis.local", 6380), 1.5)]
    assert fake_socket.timeout == 12
    assert fake_socket.options[(socket.IPPROTO_TCP, socket.TCP_NODELAY)] == 1
    assert fake_socket.sent == []


def test_connect_is_noop_when_connected(fake_socket):
    conn = Connection()
    conn.connect()
    conn.connect()
    assert len(fake_socket.connects) == 1


def test_default_timeouts_from_config(fake_socket):
    Config.stream_timeout = 7
    Config.connect_timeout = 0.5
    Connection().connect()
    assert fake_socket.connects == [(("127.0.0.1", 6379), 0.5)]
    assert fake_socket.timeout == 7.0


def test_keepalive_options(fake_socket):
    conn = Connection(socket_keepalive=True, socket_keepalive_options={socket.TCP_KEEPCNT: 3})
    conn.connect()
    assert fake_socket.options[(socket.SOL_SOCKET, socket.SO_KEEPALIVE)] == 1
    assert fake_socket.options[(socket.SOL_TCP, socket.TCP_KEEPCNT)] == 3


@pytest.mark.parametrize(
    "error, expected",
    [
        (ConnectionRefusedError(111, "Connection refused"), ConnectionError),
        (socket.gaierror(-2, "Name or service not known"), ConnectionError),
        (socket.timeout("timed out"), TimeoutError),
    ],
)
def test_connect_failures(refuse_connections, error, expected):
    refuse_connections(error)
    conn = Connection()
    with pytest.raises(expected):
        conn.connect()
    assert not conn.is_connected


def test_connect_refused_for_real():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    listener.close()
    conn = Connection(port=port, connect_timeout=1)
    with pytest.raises(ConnectionError):
        conn.connect()
    assert not conn.is_connected


def test_auth(fake_socket):
    fake_socket.queue(b"+OK\r\n")
    conn = Connection(password="sekret")
    conn.connect()
    assert conn.is_connected
    assert fake_socket.written == b"*2\r\n$4\r\nAUTH\r\n$6\r\nsekret\r\n"


def test_auth_with_username(fake_socket):
    fake_socket.queue(b"+OK\r\n")
    Connection(username="app", password="sekret").connect()
    assert fake_socket.written == b"*3\r\n$4\r\nAUTH\r\n$3\r\napp\r\n$6\r\nsekret\r\n"


def test_auth_unexpected_reply(fake_socket):
    fake_socket.queue(b"+NOPE\r\n")
    conn = Connection(password="sekret")
    with pytest.raises(AuthenticationError):
        conn.connect()
    assert not conn.is_connected
    assert fake_socket.closed


def test_auth_rejected(fake_socket):
    fake_socket.queue(b"-WRONGPASS invalid username-password pair\r\n")
    conn = Connection(password="wrong")
    with pytest.raises(AuthenticationError, match="WRONGPASS"):
        conn.connect()
    assert not conn.is_connected


def test_disconnect(fake_socket):
    conn = Connection()
    conn.connect()
    conn.disconnect()
    assert not conn.is_connected
    assert fake_socket.closed
    conn.disconnect()
    assert not conn.is_connected


def test_disconnect_when_never_connected():
    conn = Connection()
    conn.disconnect()
    assert not conn.is_connected


def test_reconnect(fake_socket):
    conn = Connection()
    conn.connect()
    conn.reconnect()
    assert conn.is_connected
    assert len(fake_socket.connects) == 2


def test_context_manager(fake_socket):
    with Connection() as conn:
        assert conn.is_connected
    assert not conn.is_connected
    assert fake_socket.closed


def test_execute_command_connects_lazily(fake_socket):
    fake_socket.queue(b"+PONG\r\n")
    conn = Connection()
    assert conn.execute_command("PING") == SimpleString("PONG")
    assert conn.is_connected
    assert fake_socket.written == b"*1\r\n$4\r\nPING\r\n"


def test_execute_command(fake_socket):
    fake_socket.queue(b"$5\r\nvalue\r\n$-1\r\n:2\r\n")
    conn = Connection()
    assert conn.execute_command("GET", "key") == BulkString(b"value")
    assert conn.execute_command("GET", "missing") == NULL_BULK_STRING
    assert conn.execute_command("DEL", "a", "b") == Integer(2)
    assert fake_socket.sent == [
        b"*2\r\n$3\r\nGET\r\n$3\r\nkey\r\n",
        b"*2\r\n$3\r\nGET\r\n$7\r\nmissing\r\n",
        b"*3\r\n$3\r\nDEL\r\n$1\r\na\r\n$1\r\nb\r\n",
    ]


def test_execute_command_short_reads(fake_socket):
    payload = b"v" * 100000
    fake_socket.read_size = 1000
    fake_socket.queue(b"$100000\r\n" + payload + b"\r\n")
    conn = Connection(read_chunk_size=4096)
    assert conn.execute_command("GET", "big") == BulkString(payload)
    assert max(fake_socket.recv_sizes) == 4096
    assert len(fake_socket.recv_sizes) > 100


def test_read_chunk_size_from_config(fake_socket):
    Config.read_chunk_size = 16
    fake_socket.queue(b"$40\r\n" + b"x" * 40 + b"\r\n")
    Connection().execute_command("GET", "key")
    assert set(fake_socket.recv_sizes) == {16}


def test_execute_empty_command(fake_socket):
    conn = Connection()
    with pytest.raises(InvalidCommandError):
        conn.execute_command()
    assert fake_socket.connects == []


def test_server_error_keeps_connection(fake_socket):
    fake_socket.queue(b"-WRONGTYPE Operation against a key\r\n+OK\r\n")
    conn = Connection()
    with pytest.raises(WrongTypeError) as exc_info:
        conn.execute_command("INCR", "hash")
    assert isinstance(exc_info.value, ServerError)
    assert conn.is_connected
    assert conn.execute_command("SET", "a", 1) == SimpleString("OK")


def test_stream_closed_mid_reply(fake_socket):
    fake_socket.queue(b"$10\r\nhel")
    conn = Connection()
    with pytest.raises(ConnectionError):
        conn.execute_command("GET", "key")
    assert not conn.is_connected
    assert fake_socket.closed


def test_protocol_error_disconnects(fake_socket, caplog):
    fake_socket.queue(b"?what\r\n")
    conn = Connection()
    with caplog.at_level(logging.INFO, logger="rediswire"):
        with pytest.raises(ProtocolError):
            conn.execute_command("PING")
    assert not conn.is_connected
    assert "Dropping connection" in caplog.text


def test_read_timeout(fake_socket):
    fake_socket.recv_error = socket.timeout("timed out")
    conn = Connection()
    with pytest.raises(TimeoutError):
        conn.execute_command("BLPOP", "queue", 0)
    assert not conn.is_connected


def test_write_failure(fake_socket):
    fake_socket.send_error = BrokenPipeError(32, "Broken pipe")
    conn = Connection()
    with pytest.raises(ConnectionError, match="Broken pipe"):
        conn.execute_command("PING")
    assert not conn.is_connected


def test_execute_command_connection_refused(refuse_connections, fake_socket):
    conn = Connection()
    conn.connect()
    conn.disconnect()
    refuse_connections(ConnectionRefusedError(111, "Connection refused"))
    with pytest.raises(ConnectionError):
        conn.execute_command("PING")
    assert not conn.is_connected


def test_echo_round_trip(echo_server):
    host, port = echo_server.server_address
    args = ["SET", "key with spaces", b"\x00\r\n\xff", 12, -3, "ünïcode", ""]
    with Connection(host, port, stream_timeout=5) as conn:
        response = conn.execute_command(*args)
    assert response == Array(
        tuple(BulkString(conn.packer.encode(arg)) for arg in args)
    )
    assert echo_server.received == [[conn.packer.encode(arg) for arg in args]]


def test_echo_round_trip_many_commands(echo_server):
    host, port = echo_server.server_address
    with Connection(host, port, stream_timeout=5, read_chunk_size=3) as conn:
        for i in range(20):
            assert conn.execute_command("ECHO", i) == Array(
                (BulkString(b"ECHO"), BulkString(b"%d" % i))
            )


@pytest.mark.os("linux")
def test_unix_domain_socket(tmp_path):
    path = str(tmp_path / "redis.sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(1)

    def serve():
        client, _ = server.accept()
        with client:
            data = b""
            while not data.endswith(b"PING\r\n"):
                data += client.recv(1024)
            client.sendall(b"+PONG\r\n")

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        with UnixDomainSocketConnection(path, stream_timeout=5) as conn:
            assert conn.execute_command("PING") == SimpleString("PONG")
    finally:
        thread.join(5)
        server.close()


def test_unix_domain_socket_missing_path(tmp_path):
    conn = UnixDomainSocketConnection(str(tmp_path / "missing.sock"))
    with pytest.raises(ConnectionError):
        conn.connect()


def test_base_connection_is_abstract():
    with pytest.raises(TypeError):
        BaseConnection()


@pytest.mark.parametrize("read_chunk_size", [0, -1])
def test_non_positive_read_chunk_size(fake_socket, read_chunk_size):
    with pytest.raises(ValueError):
        Connection(read_chunk_size=read_chunk_size)
    with pytest.raises(ValueError):
        Config.read_chunk_size = read_chunk_size
    fake_socket.queue(b"+PONG\r\n")
    conn = Connection()
    assert conn.execute_command("PING") == SimpleString("PONG")
    assert conn.is_connected
