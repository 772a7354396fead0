"""Listener lifecycle: bind, serve, and restart the metrics server after failures."""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from enum import Enum
from threading import Event, Lock
from typing import Any

import uvicorn
from fastapi import FastAPI

from .utils.config import ExporterSettings
from .utils.logging import log_error, setup_logger

logger = setup_logger(__name__, context={"component": "server"})

LISTEN_BACKLOG = 256


class ListenerState(str, Enum):
    """Lifecycle states of the metrics listener."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"


class MetricsServer:
    """
    Runs the exporter application on a TCP listener and restarts it on failure.

    ``start`` blocks until the listener closes. ``serve_forever`` keeps calling
    ``start`` after a fixed delay whenever it ends in ``FAILED``; there is no
    retry limit and no backoff.
    """

    def __init__(
        self,
        app: FastAPI,
        settings: ExporterSettings,
        *,
        error_log: logging.Logger | None = None,
        server_factory: Callable[[uvicorn.Config], Any] | None = None,
    ) -> None:
        self.app = app
        self.settings = settings
        self.error_log = error_log
        self._server_factory = server_factory or uvicorn.Server
        self._server: Any | None = None
        self._state = ListenerState.STOPPED
        self._state_lock = Lock()
        self._stop_requested = Event()
        self._supervising = False
        self._idle = Event()
        self._idle.set()
        self.restart_count = 0

    @property
    def state(self) -> ListenerState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: ListenerState) -> None:
        with self._state_lock:
            self._state = state

    def _bind(self) -> socket.socket:
        """Bind and listen on the configured address."""
        host = self.settings.host
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, self.settings.port))
            sock.listen(LISTEN_BACKLOG)
        except OSError:
            sock.close()
            raise
        return sock

    def _build_config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            backlog=LISTEN_BACKLOG,
            lifespan="on",
            log_config=None,
        )

    def start(self) -> ListenerState:
        """
        Bind the listener and serve until it closes.

        Returns:
            The final state: ``STOPPED`` after a clean shutdown, ``FAILED`` when
            binding or serving failed
        """
        with self._state_lock:
            if self._state in (ListenerState.STARTING, ListenerState.RUNNING):
                logger.info("Server is already running.")
                return self._state
            # Under serve_forever the stop flag is reset once, before the first attempt.
            if not self._supervising:
                self._stop_requested.clear()
            elif self._stop_requested.is_set():
                self._state = ListenerState.STOPPED
                return self._state
            self._state = ListenerState.STARTING
            self._idle.clear()

        logger.info(
            f"Starting metrics server on {self.settings.host}:{self.settings.port}",
            extra={"status": "starting"},
        )

        sock: socket.socket | None = None
        try:
            sock = self._bind()
            server = self._server_factory(self._build_config())
            self._server = server
            self._set_state(ListenerState.RUNNING)
            logger.info(
                f"Metrics server listening on {sock.getsockname()}",
                extra={"status": "running"},
            )
            if not self._stop_requested.is_set():
                server.run(sockets=[sock])
            if not getattr(server, "started", False) and not self._stop_requested.is_set():
                raise RuntimeError("listener exited before startup completed")
        except Exception as exc:
            self._set_state(ListenerState.FAILED)
            log_error(logger, self.error_log, f"Failed to run server: {exc}")
        else:
            self._set_state(ListenerState.STOPPED)
            logger.info("Metrics server stopped.", extra={"status": "stopped"})
        finally:
            self._server = None
            if sock is not None:
                sock.close()
            self._idle.set()

        return self.state

    def serve_forever(self) -> ListenerState:
        """Run ``start`` and restart it after ``restart_delay_seconds`` while it fails."""

        with self._state_lock:
            self._stop_requested.clear()
            self._supervising = True
        try:
            while True:
                state = self.start()
                if state is not ListenerState.FAILED:
                    return state
                if not self._schedule_restart():
                    self._set_state(ListenerState.STOPPED)
                    return ListenerState.STOPPED
        finally:
            self._supervising = False

    def _schedule_restart(self) -> bool:
        """Wait for the restart delay; return False if a stop was requested meanwhile."""

        delay = self.settings.restart_delay_seconds
        log_error(
            logger,
            self.error_log,
            f"Unexpected failure. Attempting restart in {delay:g} seconds...",
        )
        if self._stop_requested.wait(delay):
            logger.info("Restart cancelled by stop request.")
            return False
        self.restart_count += 1
        return True

    def stop(self, timeout: float | None = 10.0) -> None:
        """
        Stop serving, cancel any pending restart, and wait for the listener to close.

        Args:
            timeout: Seconds to wait for the listener to close, ``None`` waits forever
        """
        self._stop_requested.set()
        server = self._server
        if server is not None:
            server.should_exit = True

        if not self._idle.wait(timeout):
            log_error(logger, self.error_log, "Timed out waiting for the metrics server to stop")
            return

        self._set_state(ListenerState.STOPPED)
        logger.info("Metrics server stopped.", extra={"status": "stopped"})
