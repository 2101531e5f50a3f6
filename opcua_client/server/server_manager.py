"""
Reference server manager.

This module provides the reference server lifecycle, using asyncua's
native context manager pattern.
"""

import asyncio
from typing import Any, Callable, Optional

from asyncua import Server

from ..logging import log_info, log_error, set_library_level
from ..types import WireKind
from .address_space_builder import AddressSpaceBuilder


class ReferenceServerManager:
    """
    Manages the reference OPC UA server lifecycle.

    Uses asyncua's native patterns for:
    - Server initialization and configuration
    - Address space creation
    - Server-side value changes
    """

    def __init__(self, config: dict, on_ready: Optional[Callable[[], None]] = None):
        """
        Initialize server manager.

        Args:
            config: Reference server configuration dictionary
            on_ready: Called once the server is listening
        """
        self.config = config
        self.on_ready = on_ready

        self.server: Optional[Server] = None
        self.address_space_builder: Optional[AddressSpaceBuilder] = None

        self._running = False

    @property
    def namespace_index(self) -> Optional[int]:
        if self.address_space_builder is None:
            return None
        return self.address_space_builder.namespace_idx

    async def run(self) -> None:
        """
        Run the server until stop() is called.

        This is the main entry point that handles the complete
        server lifecycle using asyncua's context manager.
        """
        try:
            await self._setup_components()

            async with self.server:
                log_info("Reference server started")
                self._running = True
                if self.on_ready:
                    self.on_ready()

                while self._running:
                    await asyncio.sleep(0.1)

        except asyncio.CancelledError:
            log_info("Server shutdown requested")
        except Exception as e:
            log_error(f"Server error: {e}")
            raise
        finally:
            self._running = False
            log_info("Server cleanup completed")

    async def stop(self) -> None:
        """Request server shutdown."""
        self._running = False

    async def write_value(self, name: str, value: Any, kind: Optional[WireKind] = None) -> None:
        """
        Change a variable from the server side.

        Args:
            name: Variable name in the reference namespace
            value: New value (a list for array variables)
            kind: Kind to write, defaults to the variable's configured kind

        Raises:
            KeyError: If no variable has this name
        """
        node = self.address_space_builder.variable_nodes[name]
        if kind is None:
            kind = self.address_space_builder.variable_kinds[name]
        variant = AddressSpaceBuilder.make_variant(kind, value, isinstance(value, (list, tuple)))
        await node.write_value(variant)

    async def read_value(self, name: str) -> Any:
        """Read a variable from the server side."""
        node = self.address_space_builder.variable_nodes[name]
        return await node.read_value()

    async def _setup_components(self) -> None:
        """Setup all server components."""
        server_config = self.config.get("server", {})
        address_space_config = self.config.get("address_space", {})

        set_library_level(self.config.get("library_log_level", "WARNING"))

        self.server = Server()

        # Configure server BEFORE init
        await self._configure_server(server_config)

        await self.server.init()
        log_info("Server initialized")

        # Build address space AFTER init
        await self._build_address_space(address_space_config)

    async def _configure_server(self, server_config: dict) -> None:
        """Configure server settings before initialization."""
        endpoint_url = server_config.get("endpoint_url", "opc.tcp://127.0.0.1:4840/")
        self.server.set_endpoint(endpoint_url)
        log_info(f"Endpoint: {endpoint_url}")

        server_name = server_config.get("name", "opcua-client reference server")
        self.server.set_server_name(server_name)

    async def _build_address_space(self, address_space_config: dict) -> None:
        """Build OPC UA address space from configuration."""
        self.address_space_builder = AddressSpaceBuilder(
            server=self.server,
            namespace_uris=address_space_config.get("namespaces", ["ns5"])
        )

        if not await self.address_space_builder.initialize():
            raise RuntimeError("Failed to initialize address space builder")

        await self.address_space_builder.build_from_config(address_space_config)
