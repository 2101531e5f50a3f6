"""
End-to-end tests against the reference server.
"""

import math
import struct

import pytest
from asyncua import ua

from opcua_client import Client, StatusCodeError, TypeMismatchError, start
from opcua_client.client.stack import UaStack
from opcua_client.types import SessionState

from conftest import free_port


@pytest.fixture
def client(reference_server):
    """Client connected to the reference server."""
    client = Client()
    client.connect(reference_server.endpoint_url)
    yield client
    client.disconnect()
    client.close()


@pytest.fixture
def ns(reference_server):
    return reference_server.namespace_index


def test_reference_namespace_index(ns):
    assert ns == 5


def test_read_write_multi_read_scenario(client, ns):
    assert client.state == SessionState.ACTIVATED
    assert client.read_uint32(ns, "uint32b") == 1000
    client.write_uint32(ns, "uint32b", 4242)
    assert client.read_uint32(ns, "uint32b") == 4242
    assert client.multi_read(ns, ["uint32b", "uint16a"]) == [4242, 0]


def test_typed_scalar_reads(client, ns):
    assert client.read_uint16(ns, "uint16c") == 200
    assert client.read_boolean(ns, "true_var") is True
    assert client.read_bool(ns, "false_var") is False
    assert client.read_byte(ns, "byte_max") == 255
    assert client.read_string(ns, "string_hello") == "Hello World"
    assert client.read_string(ns, "string_empty") == ""
    assert client.read_float(ns, "float_pi") == struct.unpack('<f', struct.pack('<f', 3.14159))[0]
    assert client.read_double(ns, "double_pi") == math.pi
    assert client.read_double(ns, "double_large") == 1.23456789e100


def test_typed_array_reads(client, ns):
    assert client.read_int32_array(ns, "int32_array") == [1, 2, 3, 4, 5]
    assert client.read_int32_array(ns, "int32_array_empty") == []
    assert client.read_boolean_array(ns, "bool_array") == [True, False, True, True, False]
    assert client.read_byte_array(ns, "byte_array") == [10, 20, 30, 40]
    assert client.read_double_array(ns, "double_array") == [1.111, 2.222, 3.333, 4.444]


def test_array_write(client, ns):
    client.write_uint32_array(ns, "uint32_array", [7, 8])
    assert client.read_uint32_array(ns, "uint32_array") == [7, 8]


def test_string_and_double_writes(client, ns):
    client.write_string(ns, "string_test", "changed\x00value")
    assert client.read_string(ns, "string_test") == "changed\x00value"
    client.write_double(ns, "double_negative", -1.5)
    assert client.read_double(ns, "double_negative") == -1.5


def test_multi_write(client, ns):
    client.multi_write_uint16(ns, ["uint16b", "uint16c"], [101, 201])
    assert client.multi_read(ns, ["uint16b", "uint16c"]) == [101, 201]


def test_wrong_kind_is_type_mismatch(client, ns):
    with pytest.raises(TypeMismatchError):
        client.read_boolean(ns, "uint32c")


def test_unknown_namespace(client):
    with pytest.raises(StatusCodeError) as excinfo:
        client.read_uint32(12, "uint32b")
    assert excinfo.value.name == "BadNodeIdUnknown"


def test_multi_read_fails_on_unknown_node(client, ns):
    with pytest.raises(StatusCodeError):
        client.multi_read(ns, ["uint32a", "does_not_exist", "uint32c"])


def test_start_context_manager(reference_server, ns):
    with start(reference_server.endpoint_url) as client:
        assert client.read_uint32(ns, "uint32c") == 2000
    assert client.is_closed


def test_session_observer_uses_client(reference_server, ns):
    client = Client()
    seen = []

    @client.after_session_created
    def on_ready(c):
        seen.append((c.state, c.create_subscription(), c.read_uint32(ns, "uint32c")))

    try:
        assert client.connect(reference_server.endpoint_url) == 0
        assert len(seen) == 1
        state, subscription_id, value = seen[0]
        assert state == SessionState.ACTIVATED
        assert subscription_id is not None
        assert value == 2000

        # Later blocking calls do not fire the observer again
        client.read_uint32(ns, "uint32c")
        client.drive_once(50)
        assert len(seen) == 1
    finally:
        client.disconnect()
        client.close()


def test_drive_once_while_connected(client):
    assert client.drive_once(50) == 0


def test_connect_to_closed_port_returns_status():
    stack = UaStack(request_timeout_s=2.0)
    try:
        status = stack.connect(f"opc.tcp://127.0.0.1:{free_port()}/")
        assert status == ua.StatusCodes.BadCommunicationError
        assert not stack.is_connected
        assert stack.iterate(0) == 0
        assert stack.read_attributes([ua.NodeId("x", 5, ua.NodeIdType.String)])[0] == \
            ua.StatusCodes.BadConnectionClosed
    finally:
        stack.release()
    assert stack.is_released
