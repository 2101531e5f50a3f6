"""
OPC UA client binding.

Connects to an OPC UA server through asyncua, reads and writes strongly
typed node values addressed by namespace index and string identifier, and
delivers data-change notifications to a host callback.

Architecture:
- types/: wire kinds, strict Variant conversion, data models
- client/: stack adapter, session state, subscriptions, batched services
- server/: reference server used to validate the client
- config.py: configuration loading and defaults
- logging.py: logging setup

The client is single-threaded: network progress only happens inside
blocking calls, and notifications are delivered by drive_once().
"""

from .client import Client, start
from .config import get_default_config, load_config
from .errors import (
    OpcuaClientError,
    InvalidArgumentError,
    StatusCodeError,
    TypeMismatchError,
    ShapeError,
    ClientInitializationError,
)
from .logging import configure_logging
from .status import GOOD, status_code_to_name, human_status_code
from .types import WireKind, SessionState, ChannelState

__version__ = "1.0.0"

__all__ = [
    'Client',
    'start',
    'get_default_config',
    'load_config',
    'OpcuaClientError',
    'InvalidArgumentError',
    'StatusCodeError',
    'TypeMismatchError',
    'ShapeError',
    'ClientInitializationError',
    'configure_logging',
    'GOOD',
    'status_code_to_name',
    'human_status_code',
    'WireKind',
    'SessionState',
    'ChannelState',
]
