"""
Pytest configuration and fixtures for the opcua_client test suite.
"""

import socket

import pytest
from asyncua import ua

from opcua_client import Client
from opcua_client.status import GOOD
from opcua_client.types import ChannelState, SessionState


# ============================================================================
# In-memory stack
# ============================================================================

class FakeStack:
    """
    Stack adapter double with scripted results.

    Node values are keyed by (namespace index, name). Data-change
    notifications queued with ``push_notification`` are delivered in order
    by the next ``iterate`` call.
    """

    def __init__(self):
        self.values: dict[tuple[int, str], ua.Variant] = {}
        self.item_status: dict[tuple[int, str], int] = {}
        self.service_status = GOOD
        self.connect_status = GOOD
        self.iterate_status = GOOD
        self.subscription_status = GOOD
        self.monitor_status = GOOD
        self.drop_last_result = False

        self.connected = False
        self.released = False
        self.calls: list[tuple] = []
        self.subscription_params: list[dict] = []
        self.monitoring_params: list[dict] = []
        self._next_id = 1
        self._notifications: list[tuple] = []

        self.context = None
        self.state_callback = None
        self.data_change_callback = None
        self.subscription_status_callback = None

    # Stack interface

    def install_callbacks(self, context, state_callback=None, data_change_callback=None,
                          subscription_status_callback=None):
        self.context = context
        self.state_callback = state_callback
        self.data_change_callback = data_change_callback
        self.subscription_status_callback = subscription_status_callback

    def release(self):
        self.released = True
        self.connected = False
        self.state_callback = None
        self.data_change_callback = None
        self.subscription_status_callback = None
        self.context = None

    def connect(self, url):
        self.calls.append(("connect", url))
        if self.connect_status != GOOD:
            self.emit_state(ChannelState.CLOSED, SessionState.CLOSED)
            return self.connect_status
        self.emit_state(ChannelState.OPEN, SessionState.CLOSED)
        for state in (SessionState.CREATE_REQUESTED, SessionState.CREATED,
                      SessionState.ACTIVATE_REQUESTED, SessionState.ACTIVATED):
            self.emit_state(ChannelState.OPEN, state)
        self.connected = True
        return GOOD

    def disconnect(self):
        self.calls.append(("disconnect",))
        if not self.connected:
            return GOOD
        self.connected = False
        self.emit_state(ChannelState.OPEN, SessionState.CLOSING)
        self.emit_state(ChannelState.CLOSED, SessionState.CLOSED)
        return GOOD

    def iterate(self, timeout_ms):
        self.calls.append(("iterate", timeout_ms))
        while self._notifications:
            kind, args = self._notifications.pop(0)
            if kind == "data" and self.data_change_callback is not None:
                self.data_change_callback(self.context, *args)
            elif kind == "status" and self.subscription_status_callback is not None:
                self.subscription_status_callback(self.context, *args)
        return self.iterate_status

    def read_attribute(self, node_id):
        status, results = self.read_attributes([node_id])
        if status != GOOD:
            return status, None
        return results[0]

    def read_attributes(self, node_ids):
        self.calls.append(("read", [self._key(n) for n in node_ids]))
        if self.service_status != GOOD:
            return self.service_status, []
        results = []
        for node_id in node_ids:
            key = self._key(node_id)
            if key not in self.values:
                results.append((ua.StatusCodes.BadNodeIdUnknown, None))
            else:
                results.append((self.item_status.get(key, GOOD), self.values[key]))
        if self.drop_last_result:
            results = results[:-1]
        return GOOD, results

    def write_attribute(self, node_id, variant):
        status, results = self.write_attributes([node_id], [variant])
        if status != GOOD:
            return status
        return results[0]

    def write_attributes(self, node_ids, variants):
        self.calls.append(("write", [self._key(n) for n in node_ids]))
        if self.service_status != GOOD:
            return self.service_status, []
        results = []
        for node_id, variant in zip(node_ids, variants):
            key = self._key(node_id)
            status = self.item_status.get(key, GOOD)
            if key not in self.values:
                status = ua.StatusCodes.BadNodeIdUnknown
            if status == GOOD:
                self.values[key] = variant
            results.append(status)
        return GOOD, results

    def create_subscription(self, params):
        self.subscription_params.append(params)
        if self.subscription_status != GOOD:
            return self.subscription_status, None
        return GOOD, self._allocate_id()

    def create_monitored_item(self, subscription_id, node_id, params):
        self.monitoring_params.append(params)
        if self.monitor_status != GOOD:
            return self.monitor_status, None
        return GOOD, self._allocate_id()

    # Scripting helpers

    def emit_state(self, channel_state, session_state):
        if self.state_callback is not None:
            self.state_callback(self.context, channel_state, session_state)

    def push_notification(self, subscription_id, monitored_item_id, variant,
                          server_ts=None, source_ts=None):
        self._notifications.append(
            ("data", (subscription_id, monitored_item_id, variant, server_ts, source_ts))
        )

    def push_subscription_status(self, subscription_id, status_code):
        self._notifications.append(("status", (subscription_id, status_code)))

    def set_value(self, ns_index, name, variant, status=GOOD):
        self.values[(ns_index, name)] = variant
        if status != GOOD:
            self.item_status[(ns_index, name)] = status

    def count(self, call_name):
        return sum(1 for call in self.calls if call[0] == call_name)

    def _allocate_id(self):
        allocated = self._next_id
        self._next_id += 1
        return allocated

    @staticmethod
    def _key(node_id):
        return node_id.NamespaceIndex, node_id.Identifier


@pytest.fixture
def fake_stack():
    """Create an in-memory stack."""
    return FakeStack()


@pytest.fixture
def fake_client(fake_stack):
    """Create a client bound to the in-memory stack."""
    client = Client(stack_factory=lambda: fake_stack)
    yield client
    client.close()


@pytest.fixture
def connected_client(fake_client):
    """Create a connected client bound to the in-memory stack."""
    fake_client.connect("opc.tcp://fake:4840")
    return fake_client


# ============================================================================
# Reference server
# ============================================================================

def free_port() -> int:
    """Get a TCP port nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture(scope="module")
def reference_server():
    """Start the reference server for one test module."""
    from opcua_client.server import ReferenceServer

    server = ReferenceServer(f"opc.tcp://127.0.0.1:{free_port()}/")
    if not server.start(timeout=20.0):
        pytest.skip("Reference server could not start")
    yield server
    server.stop()
