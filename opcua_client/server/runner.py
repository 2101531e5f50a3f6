"""
Background-thread runner for the reference server.

The server gets its own event loop on a daemon thread so a blocking,
single-threaded client can talk to it from the calling thread.
"""

import asyncio
import threading
from typing import Any, Optional

from ..logging import log_info, log_warn, log_error
from ..types import WireKind
from .config import DEFAULT_ENDPOINT, get_reference_config
from .server_manager import ReferenceServerManager


class ReferenceServer:
    """
    Runs a ReferenceServerManager on a background thread.

    Example:
        server = ReferenceServer("opc.tcp://127.0.0.1:48400/")
        if server.start():
            server.write_value("uint32b", 4243)
            server.stop()
    """

    def __init__(self, endpoint_url: str = DEFAULT_ENDPOINT, config: Optional[dict] = None):
        """
        Initialize the runner.

        Args:
            endpoint_url: Endpoint used when no config is given
            config: Full reference server configuration
        """
        self.config = config or get_reference_config(endpoint_url)
        self.endpoint_url = self.config["server"]["endpoint_url"]

        self._manager: Optional[ReferenceServerManager] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready_event = threading.Event()
        self._stop_event = threading.Event()
        self._error: Optional[BaseException] = None

    @property
    def namespace_index(self) -> Optional[int]:
        return self._manager.namespace_index if self._manager else None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._ready_event.is_set()

    def start(self, timeout: float = 10.0) -> bool:
        """
        Start the server thread and wait until it listens.

        Returns:
            True if the server is ready, False otherwise
        """
        log_info("Starting reference server...")

        self._stop_event.clear()
        self._ready_event.clear()
        self._error = None
        self._manager = ReferenceServerManager(self.config, on_ready=self._ready_event.set)

        self._thread = threading.Thread(
            target=self._run_server_thread,
            daemon=True,
            name="opcua-reference-server"
        )
        self._thread.start()

        if not self._ready_event.wait(timeout) or self._error is not None:
            log_error(f"Reference server failed to start: {self._error!r}")
            self.stop()
            return False

        log_info(f"Reference server listening on {self.endpoint_url}")
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Stop the server thread.

        Returns:
            True if the thread finished within ``timeout``
        """
        self._stop_event.set()

        stopped = True
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

            if self._thread.is_alive():
                log_warn("Server thread did not stop within timeout")
                stopped = False
            else:
                log_info("Server thread stopped")

        self._thread = None
        return stopped

    def write_value(self, name: str, value: Any, kind: Optional[WireKind] = None, timeout: float = 5.0) -> None:
        """Change a variable from the server side and wait for completion."""
        self._call(self._manager.write_value(name, value, kind), timeout)

    def read_value(self, name: str, timeout: float = 5.0) -> Any:
        """Read a variable from the server side."""
        return self._call(self._manager.read_value(name), timeout)

    def _call(self, coro, timeout: float) -> Any:
        if not self.is_running or self._loop is None:
            coro.close()
            raise RuntimeError("Reference server is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def _run_server_thread(self) -> None:
        """
        Server thread main function.

        Runs the async server in a new event loop.
        """
        async def _run_with_stop_check():
            """Run server with stop event monitoring."""
            async def _monitor_stop():
                while not self._stop_event.is_set():
                    await asyncio.sleep(0.1)
                await self._manager.stop()

            monitor_task = asyncio.create_task(_monitor_stop())

            try:
                await self._manager.run()
            finally:
                monitor_task.cancel()
                try:
                    await monitor_task
                except asyncio.CancelledError:
                    pass

        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(_run_with_stop_check())
        except Exception as e:
            self._error = e
            log_error(f"Server thread error: {e}")
        finally:
            # Unblock start() if the server never became ready
            self._ready_event.set()
            self._loop.close()
            self._loop = None

    def __enter__(self) -> 'ReferenceServer':
        if not self.start():
            raise RuntimeError(f"Reference server failed to start on {self.endpoint_url}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
