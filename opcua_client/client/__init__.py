"""
OPC UA client layers.

This package provides:
- UaStack: blocking adapter over asyncua with status-code results
- SessionManager: channel/session state tracking
- SubscriptionEngine: subscriptions and data-change dispatch
- Client: the host-facing facade
"""

from .stack import UaStack, CallbackContext
from .session import SessionManager
from .subscriptions import SubscriptionEngine
from .client import Client, start, ACCESSOR_KINDS

__all__ = [
    'UaStack',
    'CallbackContext',
    'SessionManager',
    'SubscriptionEngine',
    'Client',
    'start',
    'ACCESSOR_KINDS',
]
