"""
Data models for the OPC UA client.

This module defines the value types exchanged between the session layer,
the subscription engine and host callbacks.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from asyncua import ua

from ..errors import InvalidArgumentError


class SessionState(IntEnum):
    """Session states reported by the stack."""
    CLOSED = 0
    CREATE_REQUESTED = 1
    CREATED = 2
    ACTIVATE_REQUESTED = 3
    ACTIVATED = 4
    CLOSING = 5


class ChannelState(IntEnum):
    """Secure channel states reported by the stack."""
    CLOSED = 0
    OPEN = 1
    CLOSING = 2


@dataclass(frozen=True)
class NodeIdentifier:
    """
    Address of one node: namespace index plus string identifier.

    Built fresh for every call and never cached.
    """
    namespace_index: int
    name: str

    def __post_init__(self):
        if isinstance(self.namespace_index, bool) or not isinstance(self.namespace_index, int):
            raise InvalidArgumentError(
                f"Namespace index must be an integer, got {self.namespace_index!r}"
            )
        if not 0 <= self.namespace_index <= 0xFFFF:
            raise InvalidArgumentError(
                f"Namespace index {self.namespace_index} out of range"
            )
        if not isinstance(self.name, str):
            raise InvalidArgumentError(f"Node name must be a str, got {self.name!r}")

    def to_node_id(self) -> ua.NodeId:
        """Get the asyncua NodeId (String identifier type)."""
        return ua.NodeId(self.name, self.namespace_index, ua.NodeIdType.String)

    def __str__(self) -> str:
        return f"ns={self.namespace_index};s={self.name}"


@dataclass(frozen=True)
class MonitoredItem:
    """A data-change registration on one node under one subscription."""
    monitored_item_id: int
    subscription_id: int
    node: NodeIdentifier


@dataclass(frozen=True)
class DataChangeEvent:
    """
    One data-change notification, as handed to the host observer.

    Constructed per notification and discarded after dispatch.
    """
    subscription_id: int
    monitored_item_id: int
    server_timestamp: Optional[datetime]
    source_timestamp: Optional[datetime]
    value: Any

    def as_args(self) -> tuple:
        return (
            self.subscription_id,
            self.monitored_item_id,
            self.server_timestamp,
            self.source_timestamp,
            self.value,
        )
