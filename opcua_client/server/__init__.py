"""
Reference OPC UA server used to validate the client.

This package provides:
- ReferenceServerManager: asyncua server lifecycle
- AddressSpaceBuilder: reference namespace creation
- ReferenceServer: background-thread runner with server-side writes
"""

from .server_manager import ReferenceServerManager
from .address_space_builder import AddressSpaceBuilder
from .runner import ReferenceServer
from .config import get_reference_config, DEFAULT_ENDPOINT

__all__ = [
    'ReferenceServerManager',
    'AddressSpaceBuilder',
    'ReferenceServer',
    'get_reference_config',
    'DEFAULT_ENDPOINT',
]
