"""
Adapter between the client layers and the asyncua network stack.

asyncua is coroutine based. The client is single-threaded and cooperative,
so this adapter owns a private event loop that only runs inside a blocking
call made by the host thread (connect, read, write, iterate). No background
thread exists. Subscription notifications received while any blocking call
runs the loop are queued and handed to the callbacks by ``iterate``. State
transitions are queued too and delivered once the call has left the loop, so
a state callback may issue further blocking calls.

All asyncua exceptions are converted to status codes here. Callers above
this module only ever see integers and Variants.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from asyncua import Client, ua

from ..logging import log_debug, log_info, log_warn
from ..status import (
    GOOD,
    BAD_COMMUNICATION_ERROR,
    BAD_CONNECTION_CLOSED,
    BAD_TIMEOUT,
)
from ..types.models import ChannelState, SessionState


@dataclass
class CallbackContext:
    """
    Back-reference handed to every native callback.

    Owned together with the stack by one client. Native callbacks find
    their owning layers through this object and never through module
    state.
    """
    owner: Any
    session: Any = None
    subscriptions: Any = None


# Callback signatures:
#   state_callback(context, channel_state, session_state)
#   data_change_callback(context, subscription_id, monitored_item_id,
#                        variant, server_timestamp, source_timestamp)
#   subscription_status_callback(context, subscription_id, status_code)
StateCallback = Callable[[CallbackContext, ChannelState, SessionState], None]
DataChangeCallback = Callable[..., None]
SubscriptionStatusCallback = Callable[[CallbackContext, int, int], None]


def exception_to_status(exc: BaseException) -> int:
    """Map an exception raised inside asyncua to an OPC UA status code."""
    if isinstance(exc, ua.UaStatusCodeError):
        return exc.code
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return BAD_TIMEOUT
    if isinstance(exc, OSError):
        return BAD_COMMUNICATION_ERROR
    return ua.StatusCodes.BadUnexpectedError


class _SubscriptionHandler:
    """asyncua subscription handler forwarding to the stack callbacks."""

    def __init__(self, stack: 'UaStack'):
        self._stack = stack
        self.subscription_id: Optional[int] = None

    def datachange_notification(self, node, val, data) -> None:
        data_value = data.monitored_item.Value
        self._stack._enqueue_data_change(
            self.subscription_id,
            data.subscription_data.server_handle,
            data_value.Value,
            data_value.ServerTimestamp,
            data_value.SourceTimestamp,
        )

    def status_change_notification(self, status) -> None:
        code = getattr(status, "Status", status)
        if isinstance(code, ua.StatusCode):
            code = code.value
        self._stack._enqueue_subscription_status(self.subscription_id, code)


class UaStack:
    """
    Blocking facade over one asyncua ``Client``.

    The asyncua client is created on ``connect`` and dropped on
    ``disconnect``; the adapter itself stays reusable until ``release``.
    """

    def __init__(self, request_timeout_s: float = 4.0):
        """
        Initialize the stack adapter.

        Args:
            request_timeout_s: Per-request timeout passed to asyncua
        """
        self.request_timeout_s = request_timeout_s
        self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.new_event_loop()
        self._client: Optional[Client] = None
        self._subscriptions: dict[int, Any] = {}
        self._inbox: deque = deque()
        self._transitions: deque = deque()

        self._context: Optional[CallbackContext] = None
        self._state_callback: Optional[StateCallback] = None
        self._data_change_callback: Optional[DataChangeCallback] = None
        self._subscription_status_callback: Optional[SubscriptionStatusCallback] = None

        self.channel_state = ChannelState.CLOSED
        self.session_state = SessionState.CLOSED

    # Lifecycle

    def install_callbacks(
        self,
        context: CallbackContext,
        state_callback: Optional[StateCallback] = None,
        data_change_callback: Optional[DataChangeCallback] = None,
        subscription_status_callback: Optional[SubscriptionStatusCallback] = None,
    ) -> None:
        """Bind the callback context and the native callbacks."""
        self._context = context
        self._state_callback = state_callback
        self._data_change_callback = data_change_callback
        self._subscription_status_callback = subscription_status_callback

    def release(self) -> None:
        """
        Disconnect, disarm callbacks and close the private loop.

        The callbacks are disarmed before the context reference is dropped,
        so no callback can observe a released context.
        """
        if self._loop is None:
            return

        if self._client is not None:
            self.disconnect()

        self._state_callback = None
        self._data_change_callback = None
        self._subscription_status_callback = None
        self._context = None
        self._inbox.clear()
        self._transitions.clear()

        pending = asyncio.all_tasks(self._loop)
        for task in pending:
            task.cancel()
        if pending:
            self._loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )
        self._loop.close()
        self._loop = None
        log_debug("Stack released")

    @property
    def is_released(self) -> bool:
        return self._loop is None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # Connection

    def connect(self, url: str) -> int:
        """
        Open socket, secure channel and session, then activate the session.

        State transitions are reported after each step and reach the state
        callback once the loop is idle. On failure every opened
        layer is closed again and the adapter stays usable for a retry.

        Returns:
            Status code of the first failing step, or GOOD
        """
        if self._client is not None:
            log_warn("Connect requested while already connected")
            return GOOD
        return self._run(self._connect(url))

    async def _connect(self, url: str) -> int:
        client = Client(url, timeout=self.request_timeout_s)
        channel_open = False
        session_created = False
        try:
            await client.connect_socket()
            await client.send_hello()
            await client.open_secure_channel()
            channel_open = True
            self._notify_state(ChannelState.OPEN, SessionState.CLOSED)

            self._notify_state(ChannelState.OPEN, SessionState.CREATE_REQUESTED)
            await client.create_session()
            session_created = True
            self._notify_state(ChannelState.OPEN, SessionState.CREATED)

            self._notify_state(ChannelState.OPEN, SessionState.ACTIVATE_REQUESTED)
            await client.activate_session()
        except Exception as e:
            status = exception_to_status(e)
            log_warn(f"Connect to {url} failed: {e!r}")
            await self._abort_connect(client, channel_open, session_created)
            return status

        self._client = client
        log_info(f"Connected to {url}")
        self._notify_state(ChannelState.OPEN, SessionState.ACTIVATED)
        return GOOD

    async def _abort_connect(self, client: Client, channel_open: bool, session_created: bool) -> None:
        try:
            if session_created:
                await client.close_session()
            if channel_open:
                await client.close_secure_channel()
        except Exception as e:
            log_debug(f"Ignoring error while aborting connect: {e!r}")
        finally:
            client.disconnect_socket()
        self._notify_state(ChannelState.CLOSED, SessionState.CLOSED)

    def disconnect(self) -> int:
        """
        Close the session, the secure channel and the socket.

        Returns:
            GOOD when nothing was connected, otherwise the status of the
            first failing close step
        """
        if self._client is None:
            return GOOD
        client = self._client
        self._client = None
        self._subscriptions.clear()
        return self._run(self._disconnect(client))

    async def _disconnect(self, client: Client) -> int:
        status = GOOD
        self._notify_state(self.channel_state, SessionState.CLOSING)
        try:
            await client.close_session()
        except Exception as e:
            status = exception_to_status(e)
            log_debug(f"Close session failed: {e!r}")
        self._notify_state(self.channel_state, SessionState.CLOSED)

        self._notify_state(ChannelState.CLOSING, SessionState.CLOSED)
        try:
            await client.close_secure_channel()
        except Exception as e:
            if status == GOOD:
                status = exception_to_status(e)
            log_debug(f"Close secure channel failed: {e!r}")
        finally:
            client.disconnect_socket()
        self._notify_state(ChannelState.CLOSED, SessionState.CLOSED)
        log_info("Disconnected")
        return status

    def iterate(self, timeout_ms: int) -> int:
        """
        Run the event loop for ``timeout_ms`` and deliver notifications.

        Returns:
            GOOD, or BadConnectionClosed if the connection was lost
        """
        self._check_alive()
        status = self._run(self._iterate(timeout_ms))
        self._drain_inbox()
        return status

    async def _iterate(self, timeout_ms: int) -> int:
        await asyncio.sleep(max(timeout_ms, 0) / 1000.0)
        if self._client is None:
            return GOOD
        try:
            await self._client.check_connection()
        except Exception as e:
            log_warn(f"Connection lost: {e!r}")
            client = self._client
            self._client = None
            self._subscriptions.clear()
            client.disconnect_socket()
            self._notify_state(ChannelState.CLOSED, SessionState.CLOSED)
            return BAD_CONNECTION_CLOSED
        return GOOD

    # Attribute services

    def read_attribute(self, node_id: ua.NodeId) -> tuple[int, Optional[ua.Variant]]:
        """Read the Value attribute of one node."""
        status, results = self.read_attributes([node_id])
        if status != GOOD:
            return status, None
        if len(results) != 1:
            return ua.StatusCodes.BadUnexpectedError, None
        return results[0]

    def read_attributes(self, node_ids: list) -> tuple[int, list]:
        """
        Read the Value attribute of several nodes in one request.

        Returns:
            (service status, [(item status, variant or None), ...])
        """
        if self._client is None:
            return BAD_CONNECTION_CLOSED, []
        return self._run(self._read_attributes(node_ids))

    async def _read_attributes(self, node_ids: list) -> tuple[int, list]:
        nodes = [self._client.get_node(node_id) for node_id in node_ids]
        try:
            data_values = await self._client.read_attributes(nodes, ua.AttributeIds.Value)
        except Exception as e:
            log_debug(f"Read failed: {e!r}")
            return exception_to_status(e), []
        return GOOD, [(dv.StatusCode.value, dv.Value) for dv in data_values]

    def write_attribute(self, node_id: ua.NodeId, variant: ua.Variant) -> int:
        """Write the Value attribute of one node."""
        status, results = self.write_attributes([node_id], [variant])
        if status != GOOD:
            return status
        if len(results) != 1:
            return ua.StatusCodes.BadUnexpectedError
        return results[0]

    def write_attributes(self, node_ids: list, variants: list) -> tuple[int, list]:
        """
        Write the Value attribute of several nodes in one request.

        Returns:
            (service status, [item status, ...])
        """
        if self._client is None:
            return BAD_CONNECTION_CLOSED, []
        return self._run(self._write_attributes(node_ids, variants))

    async def _write_attributes(self, node_ids: list, variants: list) -> tuple[int, list]:
        nodes = [self._client.get_node(node_id) for node_id in node_ids]
        data_values = [ua.DataValue(variant) for variant in variants]
        try:
            results = await self._client.write_values(
                nodes, data_values, raise_on_partial_error=False
            )
        except Exception as e:
            log_debug(f"Write failed: {e!r}")
            return exception_to_status(e), []
        return GOOD, [result.value for result in results]

    # Subscription services

    def create_subscription(self, params: dict) -> tuple[int, Optional[int]]:
        """
        Create a subscription.

        Args:
            params: ``subscription`` configuration section

        Returns:
            (status, subscription id or None)
        """
        if self._client is None:
            return BAD_CONNECTION_CLOSED, None
        return self._run(self._create_subscription(params))

    async def _create_subscription(self, params: dict) -> tuple[int, Optional[int]]:
        request = ua.CreateSubscriptionParameters()
        request.RequestedPublishingInterval = float(params["publishing_interval_ms"])
        request.RequestedLifetimeCount = int(params["lifetime_count"])
        request.RequestedMaxKeepAliveCount = int(params["max_keepalive_count"])
        request.MaxNotificationsPerPublish = int(params["max_notifications_per_publish"])
        request.PublishingEnabled = True
        request.Priority = int(params["priority"])

        handler = _SubscriptionHandler(self)
        try:
            subscription = await self._client.create_subscription(request, handler)
        except Exception as e:
            log_debug(f"Create subscription failed: {e!r}")
            return exception_to_status(e), None

        handler.subscription_id = subscription.subscription_id
        self._subscriptions[subscription.subscription_id] = subscription
        return GOOD, subscription.subscription_id

    def create_monitored_item(
        self,
        subscription_id: int,
        node_id: ua.NodeId,
        params: dict
    ) -> tuple[int, Optional[int]]:
        """
        Create a data-change monitored item reporting both timestamps.

        Args:
            subscription_id: Id returned by create_subscription
            node_id: Node to monitor
            params: ``monitoring`` configuration section

        Returns:
            (status, monitored item id or None)
        """
        if self._client is None:
            return BAD_CONNECTION_CLOSED, None
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return ua.StatusCodes.BadSubscriptionIdInvalid, None
        return self._run(self._create_monitored_item(subscription, node_id, params))

    async def _create_monitored_item(
        self,
        subscription,
        node_id: ua.NodeId,
        params: dict
    ) -> tuple[int, Optional[int]]:
        node = self._client.get_node(node_id)
        try:
            handle = await subscription.subscribe_data_change(
                node,
                queuesize=int(params["queue_size"]),
                sampling_interval=float(params["sampling_interval_ms"]),
            )
        except Exception as e:
            log_debug(f"Create monitored item failed: {e!r}")
            return exception_to_status(e), None
        return GOOD, handle

    # Callback delivery

    def _notify_state(self, channel_state: ChannelState, session_state: SessionState) -> None:
        # Runs inside the loop; delivery waits until _run() has returned
        self.channel_state = channel_state
        self.session_state = session_state
        self._transitions.append((channel_state, session_state))

    def _deliver_transitions(self) -> None:
        """
        Hand queued state transitions to the state callback, oldest first.

        The loop is idle here, so the callback may call back into the stack.
        A nested call delivers whatever is still queued before returning.
        """
        while self._transitions:
            channel_state, session_state = self._transitions.popleft()
            if self._state_callback is not None:
                self._state_callback(self._context, channel_state, session_state)

    def _enqueue_data_change(self, subscription_id, monitored_item_id, variant, server_ts, source_ts) -> None:
        # Called from asyncua's publish task; delivery waits for iterate()
        self._inbox.append((
            "_data_change_callback",
            (subscription_id, monitored_item_id, variant, server_ts, source_ts),
        ))

    def _enqueue_subscription_status(self, subscription_id, status_code) -> None:
        self._inbox.append(("_subscription_status_callback", (subscription_id, status_code)))

    def _drain_inbox(self) -> None:
        """
        Deliver queued notifications in arrival order.

        A notification is removed before its callback runs, so an exception
        from the callback propagates and the rest stay queued for the next
        iteration.
        """
        while self._inbox:
            callback_name, args = self._inbox.popleft()
            callback = getattr(self, callback_name)
            if callback is None:
                continue
            callback(self._context, *args)

    # Loop helpers

    def _check_alive(self) -> None:
        if self._loop is None:
            raise RuntimeError("Stack has been released")

    def _run(self, coro) -> Any:
        self._check_alive()
        result = self._loop.run_until_complete(coro)
        self._deliver_transitions()
        return result
