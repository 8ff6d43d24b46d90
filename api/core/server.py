"""
Long-running listener with two-phase graceful termination.

Lifecycle: STARTING -> SERVING -> DRAINING -> STOPPED.

- A bind/startup failure is fatal and reported at once (no retry).
- The first termination signal stops the listener from accepting new work.
- In-flight requests get `drain_timeout_s` to finish. If they don't, the
  server cancels the root context, force-stops and raises
  `ShutdownTimeoutError` so the process exits non-zero.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import socket
from collections.abc import Iterator
from enum import Enum
from typing import Any, Protocol

import uvicorn

from .context import Context
from .errors import ServerStartError, ShutdownTimeoutError

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ServerState(str, Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownSignal:
    """
    Process-wide, single-fire "begin graceful termination" event.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._signal_name: str | None = None
        self._installed: list[signal.Signals] = []
        self._previous: dict[signal.Signals, Any] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def signal_name(self) -> str | None:
        return self._signal_name

    def fire(self, name: str = "manual") -> bool:
        """
        Fire the signal. Returns False if it already fired.
        """
        if self._event.is_set():
            return False
        self._signal_name = name
        self._event.set()
        logger.info("Received %s, beginning graceful termination", name)
        return True

    async def wait(self) -> str | None:
        await self._event.wait()
        return self._signal_name

    def install(self, signals: tuple[signal.Signals, ...] = TERMINATION_SIGNALS) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        for sig in signals:
            try:
                loop.add_signal_handler(sig, self.fire, sig.name)
            except NotImplementedError:
                # Event loops without signal support (e.g. Windows Proactor).
                self._previous[sig] = signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self.fire, signal.Signals(signum).name
                    ),
                )
            self._installed.append(sig)

    def uninstall(self) -> None:
        for sig in self._installed:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))
            elif self._loop is not None:
                self._loop.remove_signal_handler(sig)
        self._installed.clear()


class InFlightTracker:
    def __init__(self) -> None:
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def count(self) -> int:
        return self._count

    @contextlib.contextmanager
    def track(self) -> Iterator[None]:
        self._count += 1
        self._idle.clear()
        try:
            yield
        finally:
            self._count -= 1
            if self._count == 0:
                self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()


class InFlightMiddleware:
    """
    ASGI middleware counting HTTP requests that are still being handled.
    """

    def __init__(self, app: Any, tracker: InFlightTracker) -> None:
        self.app = app
        self.tracker = tracker

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        with self.tracker.track():
            await self.app(scope, receive, send)


class Listener(Protocol):
    async def start(self) -> None: ...

    def stop_accepting(self) -> None: ...

    async def close(self) -> None: ...


class UvicornListener:
    """
    Hosts an ASGI app with uvicorn on a socket bound by us.

    Binding the socket here keeps bind failures as plain `OSError` instead of
    uvicorn's own `sys.exit`.
    """

    def __init__(self, app: Any, *, host: str, port: int, close_timeout_s: float = 1.0) -> None:
        self._config = uvicorn.Config(
            app,
            host=host,
            port=port,
            lifespan="on",
            log_config=None,
            timeout_graceful_shutdown=close_timeout_s,
        )
        self._server = uvicorn.Server(self._config)
        self._socket: socket.socket | None = None
        self._ticker: asyncio.Task[None] | None = None

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._config.host, self._config.port))
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        return sock

    async def start(self) -> None:
        self._socket = self._bind()
        if not self._config.loaded:
            self._config.load()
        self._server.lifespan = self._config.lifespan_class(self._config)
        await self._server.startup(sockets=[self._socket])
        if self._server.should_exit:
            self._socket.close()
            self._socket = None
            raise RuntimeError("Application startup failed.")
        # Keeps uvicorn's per-second housekeeping (Date header, limits) running.
        self._ticker = asyncio.create_task(self._server.main_loop())

    def stop_accepting(self) -> None:
        for server in self._server.servers:
            server.close()

    async def close(self) -> None:
        self._server.should_exit = True
        if self._ticker is not None:
            await self._ticker
            self._ticker = None
        sockets = [self._socket] if self._socket is not None else None
        await self._server.shutdown(sockets=sockets)
        self._socket = None


class GracefulServer:
    def __init__(
        self,
        listener: Listener,
        tracker: InFlightTracker,
        *,
        drain_timeout_s: float = 10.0,
        root: Context | None = None,
    ) -> None:
        self._listener = listener
        self._tracker = tracker
        self._drain_timeout_s = drain_timeout_s
        self._root = root
        self.state = ServerState.STARTING

    async def run(self, shutdown: ShutdownSignal) -> None:
        self.state = ServerState.STARTING
        try:
            await self._listener.start()
        except (OSError, RuntimeError) as exc:
            self.state = ServerState.STOPPED
            raise ServerStartError(f"Failed to start server: {exc}") from exc

        # From here on the listener is closed however run() ends, cancellation included.
        try:
            self.state = ServerState.SERVING
            logger.info("Waiting for signal...")
            await shutdown.wait()

            self.state = ServerState.DRAINING
            logger.info("Shutting down server...")
            self._listener.stop_accepting()
            try:
                await asyncio.wait_for(self._tracker.wait_idle(), timeout=self._drain_timeout_s)
            except asyncio.TimeoutError as exc:
                if self._root is not None:
                    self._root.cancel("server force-stopped")
                raise ShutdownTimeoutError(
                    f"Failed to graceful shutdown: {self._tracker.count} request(s) "
                    f"still in flight after {self._drain_timeout_s:.3f}s"
                ) from exc
        finally:
            await self._listener.close()
            self.state = ServerState.STOPPED

        logger.info("Server stopped")


async def run_server(server: GracefulServer, shutdown: ShutdownSignal) -> int:
    """
    Run `server` until it stops and return the process exit code.
    """
    try:
        await server.run(shutdown)
    except ServerStartError:
        logger.critical("Server failed to start", exc_info=True)
        return 1
    except ShutdownTimeoutError:
        logger.critical("Server was force-stopped", exc_info=True)
        return 1
    return 0
