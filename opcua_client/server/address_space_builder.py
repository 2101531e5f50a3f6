"""
Address space builder for the reference server.

This module registers the reference namespaces and creates one writable
variable node per configured scalar or array.
"""

from typing import Any, Optional

from asyncua import Server, ua
from asyncua.common.node import Node

from ..logging import log_info, log_error
from ..types import VariantCodec, WireKind


class AddressSpaceBuilder:
    """
    Builds the reference address space from configuration.

    Nodes use string identifiers equal to their configured name, in the
    last registered namespace.
    """

    def __init__(self, server: Server, namespace_uris: list[str]):
        """
        Initialize address space builder.

        Args:
            server: asyncua Server instance
            namespace_uris: Namespace URIs to register, in order
        """
        self.server = server
        self.namespace_uris = namespace_uris
        self.namespace_idx: Optional[int] = None
        self.variable_nodes: dict[str, Node] = {}
        self.variable_kinds: dict[str, WireKind] = {}

    async def initialize(self) -> bool:
        """
        Register the namespaces. Nodes go into the last one.

        Returns:
            True if initialization successful
        """
        try:
            for uri in self.namespace_uris:
                self.namespace_idx = await self.server.register_namespace(uri)
                log_info(f"Registered namespace '{uri}' (index: {self.namespace_idx})")
            return self.namespace_idx is not None
        except Exception as e:
            log_error(f"Failed to register namespace: {e}")
            return False

    async def build_from_config(self, address_space_config: dict) -> dict[str, Node]:
        """
        Build address space from configuration.

        Args:
            address_space_config: Address space configuration dictionary

        Returns:
            Dictionary mapping variable names to nodes
        """
        if self.namespace_idx is None:
            log_error("Address space builder not initialized")
            return {}

        objects_node = self.server.get_objects_node()

        for var_config in address_space_config.get("variables", []):
            await self._create_variable(objects_node, var_config, is_array=False)

        for array_config in address_space_config.get("arrays", []):
            await self._create_variable(objects_node, array_config, is_array=True)

        log_info(f"Created {len(self.variable_nodes)} variable nodes")
        return self.variable_nodes

    async def _create_variable(self, parent: Node, config: dict, is_array: bool) -> Optional[Node]:
        """Create a scalar or array variable node."""
        try:
            name = config["name"]
            kind = WireKind.from_string(config["datatype"])
            initial_value = config.get("initial_value")

            variant = self.make_variant(kind, initial_value, is_array)
            node = await parent.add_variable(
                ua.NodeId(name, self.namespace_idx, ua.NodeIdType.String),
                ua.QualifiedName(name, self.namespace_idx),
                variant,
                varianttype=kind.variant_type
            )
            await self._set_node_attributes(node, config.get("display_name", name), config.get("description", ""))

            self.variable_nodes[name] = node
            self.variable_kinds[name] = kind
            return node

        except Exception as e:
            log_error(f"Failed to create variable '{config.get('name', 'unknown')}': {e}")
            return None

    @staticmethod
    def make_variant(kind: WireKind, value: Any, is_array: bool) -> ua.Variant:
        """Build a Variant for a configured value with the client's codec rules."""
        if is_array:
            return VariantCodec.encode_array(list(value or []), kind)
        return VariantCodec.encode(value, kind)

    async def _set_node_attributes(self, node: Node, display_name: str, description: str) -> None:
        """Set display name, description and read/write access."""
        await node.write_attribute(
            ua.AttributeIds.DisplayName,
            ua.DataValue(ua.Variant(ua.LocalizedText(display_name)))
        )

        if description:
            await node.write_attribute(
                ua.AttributeIds.Description,
                ua.DataValue(ua.Variant(ua.LocalizedText(description)))
            )

        await node.set_writable()
