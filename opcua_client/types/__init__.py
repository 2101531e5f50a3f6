"""
OPC UA client type definitions and converters.

This package provides:
- The closed set of supported wire kinds
- Strict host value <-> Variant conversion
- Data models shared by the session and subscription layers
"""

from .type_converter import WireKind, VariantCodec, UNSUPPORTED, to_utc
from .models import (
    SessionState,
    ChannelState,
    NodeIdentifier,
    MonitoredItem,
    DataChangeEvent,
)

__all__ = [
    'WireKind',
    'VariantCodec',
    'UNSUPPORTED',
    'to_utc',
    'SessionState',
    'ChannelState',
    'NodeIdentifier',
    'MonitoredItem',
    'DataChangeEvent',
]
