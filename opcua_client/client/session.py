"""
Connection and session state tracking.

The stack reports every secure channel / session transition through a
state callback. This module keeps the latest pair and fires the
"session activated" observer once per transition into Activated.
"""

from typing import Any, Callable, Optional

from ..errors import ClientInitializationError, InvalidArgumentError
from ..logging import log_debug, log_info, log_warn
from ..status import GOOD, status_code_to_name
from ..types.models import ChannelState, SessionState
from .stack import CallbackContext


SessionObserver = Callable[[Any], None]


def on_state_change(context: CallbackContext, channel_state: ChannelState, session_state: SessionState) -> None:
    """State callback installed on the stack."""
    context.session.handle_state_change(channel_state, session_state)


class SessionManager:
    """
    Owns the stack adapter of one client and tracks its state.

    Lifecycle:
    - initialize(): allocate the stack, bind the callback context
    - connect()/disconnect(): may be repeated, the manager stays usable
    - release(): stack first, then the callback context
    """

    def __init__(self, config: dict, stack_factory: Callable[[], Any]):
        """
        Initialize session manager.

        Args:
            config: Complete client configuration dictionary
            stack_factory: Zero-argument callable returning a stack adapter
        """
        self.config = config
        self._stack_factory = stack_factory
        self.stack = None
        self.context: Optional[CallbackContext] = None

        self.channel_state = ChannelState.CLOSED
        self.session_state = SessionState.CLOSED
        self._on_session_activated: Optional[SessionObserver] = None

    @property
    def is_initialized(self) -> bool:
        return self.stack is not None

    def initialize(self, context: CallbackContext) -> None:
        """
        Allocate the stack adapter and bind the callback context.

        Raises:
            ClientInitializationError: If the stack cannot be allocated
        """
        try:
            stack = self._stack_factory()
        except Exception as e:
            raise ClientInitializationError(f"Failed to allocate OPC UA stack: {e}") from e
        if stack is None:
            raise ClientInitializationError("Failed to allocate OPC UA stack")

        context.session = self
        self.context = context
        self.stack = stack
        self.channel_state = ChannelState.CLOSED
        self.session_state = SessionState.CLOSED

    def set_session_observer(self, callback: Optional[SessionObserver]) -> None:
        self._on_session_activated = callback

    def connect(self, url: str) -> int:
        """
        Connect the stack to a server.

        Args:
            url: Endpoint URL, e.g. "opc.tcp://localhost:4840"

        Returns:
            Status code reported by the stack
        """
        if not isinstance(url, str):
            raise InvalidArgumentError(f"URL must be a str, got {type(url).__name__}")
        self._require_stack()

        log_info(f"Connecting to {url}")
        status = self.stack.connect(url)
        if status != GOOD:
            log_warn(f"Connect failed: {status_code_to_name(status)}")
        return status

    def disconnect(self) -> int:
        """
        Disconnect from the server. Never raises for an already closed
        connection.

        Returns:
            Status code reported by the stack, GOOD when not initialized
        """
        if self.stack is None:
            return GOOD
        status = self.stack.disconnect()
        if status != GOOD:
            log_debug(f"Disconnect returned {status_code_to_name(status)}")
        return status

    def query_state(self) -> tuple[ChannelState, SessionState]:
        """Get the latest (channel state, session state) pair."""
        return self.channel_state, self.session_state

    def handle_state_change(self, channel_state: ChannelState, session_state: SessionState) -> None:
        """
        Record a transition reported by the stack.

        The session observer fires only when the session moves into
        Activated from any other state.
        """
        previous = self.session_state
        self.channel_state = ChannelState(channel_state)
        self.session_state = SessionState(session_state)
        log_debug(f"State: channel={self.channel_state.name} session={self.session_state.name}")

        if self.session_state == SessionState.ACTIVATED and previous != SessionState.ACTIVATED:
            if self._on_session_activated is not None:
                self._on_session_activated(self.context.owner)

    def release(self) -> None:
        """Release the stack, then drop the callback context."""
        if self.stack is not None:
            self.stack.release()
            self.stack = None
        self.context = None
        self._on_session_activated = None
        self.channel_state = ChannelState.CLOSED
        self.session_state = SessionState.CLOSED

    def _require_stack(self) -> None:
        if self.stack is None:
            raise ClientInitializationError("Client is not initialized")
