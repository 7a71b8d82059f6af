"""Manage a network connection that reconnects with exponential backoff."""

from __future__ import annotations

import logging
import random
import socket
import threading
from typing import Any, Callable

Dialer = Callable[[str, str], Any]
"""Open a connection for ``(network, address)``; raise on failure."""

AfterFunc = Callable[[float, Callable[[], None]], None]
"""Arrange for a callback to run once after a delay given in seconds."""

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 60.0
_IMMEDIATELY = 1e-9

_log = logging.getLogger(__name__)


class ConnectionUnavailable(Exception):
    """Raised by :meth:`Manager.write` when no good connection is held."""

    def __init__(self, message: str = "connection unavailable") -> None:
        super().__init__(message)


def _timer_after(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class Manager:
    """Hold one connection and replace it when it goes bad.

    Callers ``take`` the connection when they want to use it and ``put``
    back whatever error its use raised (or None). A non-None error closes
    the connection and a new one is dialled; failed dials are retried after
    an exponentially growing delay scheduled through ``after``.
    """

    def __init__(
        self,
        dialer: Dialer,
        network: str,
        address: str,
        after: AfterFunc | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._dialer = dialer
        self.network = network
        self.address = address
        self._after = after if after is not None else _timer_after
        self._logger = logger if logger is not None else _log
        self._lock = threading.RLock()
        self._conn: Any = None
        self._backoff = INITIAL_BACKOFF
        self._generation = 0
        self._closed = False
        self._on_dialed(self._dial())

    def take(self) -> Any:
        """Return the current connection, which may be None."""
        with self._lock:
            return self._conn

    def put(self, err: BaseException | None) -> None:
        """Report the outcome of using the connection.

        A non-None error invalidates the current connection and starts a
        reconnect; None does nothing.
        """
        if err is None:
            return
        with self._lock:
            conn = self._conn
            if conn is None or self._closed:
                return
            self._logger.error("err=%s", err)
            self._conn = None
            self._schedule(_IMMEDIATELY)
        _close_quietly(conn)

    def write(self, data: bytes) -> int:
        """Write ``data`` to the connection in one take/put cycle."""
        conn = self.take()
        if conn is None:
            raise ConnectionUnavailable()
        try:
            written = conn.write(data)
        except Exception as exc:
            self.put(exc)
            raise
        self.put(None)
        return written

    def close(self) -> None:
        """Close the connection and stop reconnecting."""
        with self._lock:
            self._closed = True
            self._generation += 1
            conn, self._conn = self._conn, None
        if conn is not None:
            _close_quietly(conn)

    def __enter__(self) -> "Manager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _dial(self) -> Any:
        try:
            return self._dialer(self.network, self.address)
        except Exception as exc:
            self._logger.error("err=%s", exc)
            return None

    def _schedule(self, delay: float) -> None:
        self._generation += 1
        generation = self._generation
        self._after(delay, lambda: self._reconnect(generation))

    def _reconnect(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._generation:
                return
            self._generation += 1
        threading.Thread(target=lambda: self._on_dialed(self._dial()), daemon=True).start()

    def _on_dialed(self, conn: Any) -> None:
        with self._lock:
            if self._closed:
                if conn is not None:
                    _close_quietly(conn)
                return
            self._conn = conn
            if conn is None:
                self._backoff = exponential(self._backoff)
                self._schedule(self._backoff)
            else:
                self._backoff = INITIAL_BACKOFF
                self._generation += 1


def default_manager(network: str, address: str, logger: logging.Logger | None = None) -> Manager:
    """Return a Manager that dials real sockets and waits on real timers."""
    return Manager(_net_dial, network, address, logger=logger)


def exponential(delay: float) -> float:
    """Double ``delay`` with +/-50% jitter, capped at one minute."""
    delay = delay * 2 * (random.random() + 0.5)
    return min(delay, MAX_BACKOFF)


def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
    except Exception:
        pass


class _SocketConn:
    """A connected socket with a file-like write."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def write(self, data: bytes) -> int:
        self._sock.sendall(data)
        return len(data)

    def read(self, size: int) -> bytes:
        return self._sock.recv(size)

    def close(self) -> None:
        self._sock.close()


_FAMILIES = {"": socket.AF_UNSPEC, "4": socket.AF_INET, "6": socket.AF_INET6}
_KINDS = {"tcp": socket.SOCK_STREAM, "udp": socket.SOCK_DGRAM}


def _split_host_port(address: str) -> tuple[str | None, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    host = host.strip("[]")
    return (host or None), int(port)


def _net_dial(network: str, address: str) -> _SocketConn:
    if network == "unix":
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(address)
        except OSError:
            sock.close()
            raise
        return _SocketConn(sock)

    kind = _KINDS.get(network[:3])
    family = _FAMILIES.get(network[3:])
    if kind is None or family is None:
        raise ValueError(f"unknown network {network!r}")

    host, port = _split_host_port(address)
    error: OSError | None = None
    for fam, socktype, proto, _, sockaddr in socket.getaddrinfo(host, port, family, kind):
        sock = socket.socket(fam, socktype, proto)
        try:
            sock.connect(sockaddr)
        except OSError as exc:
            sock.close()
            error = exc
            continue
        return _SocketConn(sock)
    raise error if error is not None else OSError(f"cannot resolve {address!r}")