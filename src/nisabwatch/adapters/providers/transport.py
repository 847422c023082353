"""
Deadline Transport - Abort In-Flight Provider Requests at the Deadline

requests only knows per-socket-wait timeouts: a provider that keeps sending a
byte now and then never trips them. DeadlineWatchdog remembers every
connection opened through the session it is attached to, and when the
deadline passes it shuts those sockets down, so the blocked read fails at
once and the worker thread returns.

Files that USE this module:
- nisabwatch.adapters.providers.base (PriceSourceAdapter.fetch)
- tests.test_providers (slow-drip server test)

Files that this module USES:
- requests / urllib3 (HTTPAdapter and connection pools)
"""
from __future__ import annotations

import logging
import socket
import threading
from typing import TYPE_CHECKING, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.poolmanager import PoolManager

if TYPE_CHECKING:
    from nisabwatch.adapters.providers.base import Deadline

log = logging.getLogger(__name__)


class DeadlineWatchdog:
    """
    Shuts down the watched connections when the deadline passes.

    Used as a context manager around the requests of one adapter attempt:
    the timer starts on enter and is cancelled on exit.
    """

    def __init__(self, deadline: Deadline):
        self.deadline = deadline
        self.fired = False
        self._lock = threading.Lock()
        self._connections: List[object] = []
        self._timer: Optional[threading.Timer] = None

    def attach(self, session: requests.Session) -> requests.Session:
        adapter = DeadlineHTTPAdapter(self)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def watch(self, connection) -> None:
        with self._lock:
            self._connections.append(connection)

    def fire(self) -> None:
        with self._lock:
            self.fired = True
            connections = list(self._connections)
        for connection in connections:
            sock = getattr(connection, "sock", None)
            if sock is None:
                continue
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                # Already closed by the peer or by requests
                log.debug("Socket shutdown at deadline failed: %s", e)
        if connections:
            log.info("Deadline passed, aborted %d in-flight connection(s)", len(connections))

    def __enter__(self) -> DeadlineWatchdog:
        self._timer = threading.Timer(self.deadline.remaining(), self.fire)
        self._timer.daemon = True
        self._timer.start()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._timer is not None:
            self._timer.cancel()


class _WatchedHTTPConnectionPool(HTTPConnectionPool):
    watchdog: Optional[DeadlineWatchdog] = None

    def _new_conn(self):
        conn = super()._new_conn()
        if self.watchdog is not None:
            self.watchdog.watch(conn)
        return conn


class _WatchedHTTPSConnectionPool(HTTPSConnectionPool):
    watchdog: Optional[DeadlineWatchdog] = None

    def _new_conn(self):
        conn = super()._new_conn()
        if self.watchdog is not None:
            self.watchdog.watch(conn)
        return conn


class _WatchedPoolManager(PoolManager):
    def __init__(self, watchdog: DeadlineWatchdog, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.watchdog = watchdog
        self.pool_classes_by_scheme = {
            "http": _WatchedHTTPConnectionPool,
            "https": _WatchedHTTPSConnectionPool,
        }

    def _new_pool(self, scheme, host, port, request_context=None):
        pool = super()._new_pool(scheme, host, port, request_context=request_context)
        pool.watchdog = self.watchdog
        return pool


class DeadlineHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose connections are registered with a DeadlineWatchdog."""

    def __init__(self, watchdog: DeadlineWatchdog, **kwargs):
        self.watchdog = watchdog
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)
        self.poolmanager = _WatchedPoolManager(
            self.watchdog,
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            **pool_kwargs,
        )
