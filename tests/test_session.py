"""
Tests for the connection/session state machine.
"""

import pytest
from asyncua import ua

from opcua_client import Client, ClientInitializationError, InvalidArgumentError, StatusCodeError
from opcua_client.types import ChannelState, SessionState


class TestLifecycle:
    """Initialize, connect, disconnect, close."""

    def test_state_before_connect(self, fake_client):
        assert fake_client.state == 0
        assert fake_client.human_state == "CLOSED"
        assert fake_client.query_state() == (ChannelState.CLOSED, SessionState.CLOSED)

    def test_context_routes_to_owner(self, fake_client, fake_stack):
        assert fake_stack.context.owner is fake_client
        assert fake_stack.context.session is fake_client.session
        assert fake_stack.context.subscriptions is fake_client.subscriptions

    def test_connect_activates(self, fake_client, fake_stack):
        assert fake_client.connect("opc.tcp://fake:4840") == 0
        assert fake_client.state == SessionState.ACTIVATED
        assert fake_client.query_state() == (ChannelState.OPEN, SessionState.ACTIVATED)
        assert fake_stack.calls[0] == ("connect", "opc.tcp://fake:4840")

    def test_connect_failure_raises_and_allows_retry(self, fake_client, fake_stack):
        fake_stack.connect_status = ua.StatusCodes.BadConnectionRejected
        with pytest.raises(StatusCodeError) as excinfo:
            fake_client.connect("opc.tcp://fake:4840")
        assert excinfo.value.code == ua.StatusCodes.BadConnectionRejected
        assert fake_client.state == SessionState.CLOSED

        fake_stack.connect_status = 0
        fake_client.connect("opc.tcp://fake:4840")
        assert fake_client.state == SessionState.ACTIVATED

    def test_connect_rejects_non_string_url(self, fake_client, fake_stack):
        with pytest.raises(InvalidArgumentError):
            fake_client.connect(4840)
        assert fake_stack.count("connect") == 0

    def test_disconnect_never_connected(self, fake_client):
        assert fake_client.disconnect() == 0
        assert fake_client.disconnect() == 0

    def test_disconnect_after_connect(self, connected_client):
        assert connected_client.disconnect() == 0
        assert connected_client.state == SessionState.CLOSED
        assert connected_client.disconnect() == 0

    def test_close_releases_stack_then_context(self, fake_stack):
        client = Client(stack_factory=lambda: fake_stack)
        client.connect("opc.tcp://fake:4840")
        client.close()
        assert fake_stack.released
        assert client.session.context is None
        assert client.is_closed
        assert client.disconnect() == 0
        with pytest.raises(ClientInitializationError):
            client.read_uint32(5, "uint32b")

    def test_close_is_idempotent(self, fake_stack):
        client = Client(stack_factory=lambda: fake_stack)
        client.close()
        client.close()

    def test_context_manager_closes(self, fake_stack):
        with Client(stack_factory=lambda: fake_stack) as client:
            client.connect("opc.tcp://fake:4840")
        assert fake_stack.released

    def test_allocation_failure_is_fatal(self):
        def broken_factory():
            raise MemoryError("no stack")

        with pytest.raises(ClientInitializationError):
            Client(stack_factory=broken_factory)

    def test_invalid_config_rejected(self, fake_stack):
        with pytest.raises(InvalidArgumentError):
            Client(config={"client": {"request_timeout_s": 0}}, stack_factory=lambda: fake_stack)


class TestSessionObserver:
    """The "session activated" observer fires once per activation."""

    def test_fires_on_connect_with_client(self, fake_client):
        seen = []
        fake_client.after_session_created(seen.append)
        fake_client.connect("opc.tcp://fake:4840")
        assert seen == [fake_client]

    def test_usable_as_decorator(self, fake_client):
        seen = []

        @fake_client.after_session_created
        def on_ready(client):
            seen.append(client.state)

        fake_client.connect("opc.tcp://fake:4840")
        assert seen == [SessionState.ACTIVATED]
        assert callable(on_ready)

    def test_single_fire_per_transition(self, fake_client, fake_stack):
        calls = []
        fake_client.after_session_created(lambda client: calls.append(client))

        for state in (SessionState.CREATED, SessionState.ACTIVATE_REQUESTED,
                      SessionState.ACTIVATED, SessionState.ACTIVATED,
                      SessionState.CLOSING, SessionState.ACTIVATED):
            fake_stack.emit_state(ChannelState.OPEN, state)

        assert len(calls) == 2

    def test_no_observer_registered(self, fake_client, fake_stack):
        fake_stack.emit_state(ChannelState.OPEN, SessionState.ACTIVATED)
        assert fake_client.state == SessionState.ACTIVATED

    def test_reconnect_fires_again(self, fake_client):
        calls = []
        fake_client.after_session_created(calls.append)
        fake_client.connect("opc.tcp://fake:4840")
        fake_client.disconnect()
        fake_client.connect("opc.tcp://fake:4840")
        assert len(calls) == 2
