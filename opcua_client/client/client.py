"""
Host-facing OPC UA client.

Client ties the session manager, the subscription engine and the batched
services to one stack adapter. Typed accessors (``read_uint32``,
``write_float_array``, ``multi_write_int16``, ...) are thin entry points
generated from WireKind over one generic read/write path.
"""

from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Optional, Sequence

from ..config import build_config, get_default_config
from ..errors import ClientInitializationError, InvalidArgumentError, StatusCodeError
from ..logging import configure_logging, log_debug
from ..status import GOOD, BAD_UNEXPECTED_ERROR
from ..types import NodeIdentifier, VariantCodec, WireKind
from ..types.models import ChannelState, SessionState
from . import batch
from .session import SessionManager, on_state_change
from .stack import CallbackContext, UaStack
from .subscriptions import SubscriptionEngine, on_data_change, on_subscription_status


# Accessor suffix -> kind
ACCESSOR_KINDS: dict[str, WireKind] = {
    "byte": WireKind.BYTE,
    "sbyte": WireKind.SBYTE,
    "int16": WireKind.INT16,
    "uint16": WireKind.UINT16,
    "int32": WireKind.INT32,
    "uint32": WireKind.UINT32,
    "int64": WireKind.INT64,
    "uint64": WireKind.UINT64,
    "float": WireKind.FLOAT,
    "double": WireKind.DOUBLE,
    "boolean": WireKind.BOOLEAN,
    "bool": WireKind.BOOLEAN,
    "string": WireKind.STRING,
    "datetime": WireKind.DATETIME,
}


class Client:
    """
    OPC UA client handle.

    One Client owns one connection. It is not thread-safe; all calls,
    including drive_once(), must come from the owning thread.

    Example:
        client = Client()
        client.connect("opc.tcp://localhost:4840")
        client.write_uint32(5, "uint32b", 4242)
        value = client.read_uint32(5, "uint32b")
        client.disconnect()
        client.close()
    """

    def __init__(self, config: Optional[dict] = None, stack_factory: Optional[Callable[[], Any]] = None):
        """
        Initialize the client and allocate its stack.

        Args:
            config: Partial configuration merged over the defaults. When
                given, its ``logging`` section is applied.
            stack_factory: Zero-argument callable returning a stack adapter.
                Defaults to an asyncua-backed UaStack.

        Raises:
            InvalidArgumentError: If the configuration is invalid
            ClientInitializationError: If the stack cannot be allocated
        """
        if config is None:
            self.config = get_default_config()
        else:
            self.config = build_config(config)
            if self.config is None:
                raise InvalidArgumentError("Invalid client configuration")
            logging_config = self.config["logging"]
            configure_logging(
                level=logging_config["level"],
                json_format=logging_config["json"],
                library_level=logging_config["library_level"],
            )

        if stack_factory is None:
            timeout = self.config["client"]["request_timeout_s"]
            stack_factory = partial(UaStack, request_timeout_s=timeout)

        self.session = SessionManager(self.config, stack_factory)
        self.subscriptions = SubscriptionEngine(self.session, self.config)
        self._initialize()

    def _initialize(self) -> None:
        context = CallbackContext(owner=self)
        self.session.initialize(context)
        self.subscriptions.bind(context)
        self.session.stack.install_callbacks(
            context,
            state_callback=on_state_change,
            data_change_callback=on_data_change,
            subscription_status_callback=on_subscription_status,
        )

    # Connection

    def connect(self, url: str) -> int:
        """
        Connect and activate a session.

        Args:
            url: Endpoint URL, e.g. "opc.tcp://localhost:4840"

        Returns:
            GOOD

        Raises:
            InvalidArgumentError: If ``url`` is not a string
            StatusCodeError: If the stack reports a non-good status
        """
        self._require_open()
        status = self.session.connect(url)
        if status != GOOD:
            raise StatusCodeError(status)
        return status

    def disconnect(self) -> int:
        """Disconnect. Never raises; returns the stack's status code."""
        return self.session.disconnect()

    @property
    def state(self) -> int:
        """Current SessionState as an integer (0 before connecting)."""
        return int(self.session.session_state)

    @property
    def human_state(self) -> str:
        return self.session.session_state.name

    def query_state(self) -> tuple[ChannelState, SessionState]:
        return self.session.query_state()

    @property
    def is_closed(self) -> bool:
        return not self.session.is_initialized

    # Observers

    def after_session_created(self, callback: Callable[['Client'], None]) -> Callable:
        """
        Register the observer fired once per session activation.

        The callback receives this client. Returns the callback so the
        method can be used as a decorator.
        """
        self.session.set_session_observer(callback)
        return callback

    def after_data_changed(self, callback: Callable) -> Callable:
        """
        Register the data-change observer.

        The callback receives ``(subscription_id, monitored_item_id,
        server_time, source_time, value)``. Returns the callback so the
        method can be used as a decorator.
        """
        self.subscriptions.set_data_change_observer(callback)
        return callback

    # Generic attribute access

    def read_value(self, ns_index: int, name: str, kind: WireKind) -> Any:
        """
        Read a scalar node value that must carry ``kind``.

        Raises:
            StatusCodeError: On a non-good read status
            TypeMismatchError: If the node holds another kind
            ShapeError: If the node holds an array
        """
        variant = self._read_variant(ns_index, name)
        return VariantCodec.decode(variant, kind)

    def read_array(self, ns_index: int, name: str, kind: WireKind) -> list:
        """Read an array node value whose elements must be ``kind``."""
        variant = self._read_variant(ns_index, name)
        return VariantCodec.decode_array(variant, kind)

    def write_value(self, ns_index: int, name: str, value: Any, kind: WireKind) -> None:
        """
        Write a scalar node value as ``kind``.

        Raises:
            InvalidArgumentError: If ``value`` does not fit ``kind``
            StatusCodeError: On a non-good write status
        """
        node = NodeIdentifier(ns_index, name)
        variant = VariantCodec.encode(value, kind)
        self._write_variant(node, variant)

    def write_array(self, ns_index: int, name: str, values: Sequence[Any], kind: WireKind) -> None:
        """Write an array node value as ``kind``."""
        node = NodeIdentifier(ns_index, name)
        variant = VariantCodec.encode_array(values, kind)
        self._write_variant(node, variant)

    def _read_variant(self, ns_index: int, name: str):
        node = NodeIdentifier(ns_index, name)
        self._require_open()
        status, variant = self.session.stack.read_attribute(node.to_node_id())
        if status != GOOD:
            raise StatusCodeError(status)
        if variant is None:
            raise StatusCodeError(BAD_UNEXPECTED_ERROR)
        return variant

    def _write_variant(self, node: NodeIdentifier, variant) -> None:
        self._require_open()
        status = self.session.stack.write_attribute(node.to_node_id(), variant)
        if status != GOOD:
            raise StatusCodeError(status)
        log_debug(f"Wrote {node}")

    # Batched services

    def multi_read(self, ns_index: int, names: Sequence[str]) -> list:
        """
        Read several nodes of one namespace in one request.

        Returns:
            Decoded values in the order of ``names``

        Raises:
            StatusCodeError: If the batch or any item fails
        """
        self._require_open()
        return batch.multi_read(self.session.stack, ns_index, names)

    def multi_write(self, ns_index: int, names: Sequence[str], values: Sequence[Any], kind: WireKind) -> None:
        """Write several nodes of one namespace, all as ``kind``, in one request."""
        self._require_open()
        batch.multi_write(self.session.stack, ns_index, names, values, kind)

    # Subscriptions

    def create_subscription(self) -> Optional[int]:
        """Create a subscription. Returns its id, or None on failure."""
        self._require_open()
        return self.subscriptions.create_subscription()

    def add_monitored_item(self, subscription_id: int, ns_index: int, name: str) -> Optional[int]:
        """Monitor one node for data changes. Returns the item id, or None."""
        node = NodeIdentifier(ns_index, name)
        self._require_open()
        item = self.subscriptions.add_monitored_item(subscription_id, node)
        return item.monitored_item_id if item is not None else None

    def drive_once(self, timeout_ms: Optional[int] = None) -> int:
        """
        Let the stack make progress and deliver pending notifications.

        Must be called repeatedly by the host; there is no background
        thread.

        Args:
            timeout_ms: Upper bound for this call, defaults to
                ``client.drive_timeout_ms`` (1000)

        Returns:
            Status code reported by the stack
        """
        self._require_open()
        if timeout_ms is None:
            timeout_ms = self.config["client"]["drive_timeout_ms"]
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)):
            raise InvalidArgumentError(f"timeout_ms must be a number, got {timeout_ms!r}")
        return self.subscriptions.drive_once(timeout_ms)

    def drive_once_or_raise(self, timeout_ms: Optional[int] = None) -> int:
        """Same as drive_once() but raises StatusCodeError on a non-good status."""
        status = self.drive_once(timeout_ms)
        if status != GOOD:
            raise StatusCodeError(status)
        return status

    run_mon_cycle = drive_once
    run_mon_cycle_or_raise = drive_once_or_raise

    # Teardown

    def close(self) -> None:
        """
        Release the stack and its callback context.

        Disconnects first if needed. The client cannot be used afterwards.
        """
        self.subscriptions.set_data_change_observer(None)
        self.session.release()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _require_open(self) -> None:
        if not self.session.is_initialized:
            raise ClientInitializationError("Client is closed")


def _make_reader(kind: WireKind) -> Callable:
    def read(self, ns_index: int, name: str) -> Any:
        return self.read_value(ns_index, name, kind)
    read.__doc__ = f"Read a {kind.variant_type.name} node value."
    return read


def _make_array_reader(kind: WireKind) -> Callable:
    def read_array(self, ns_index: int, name: str) -> list:
        return self.read_array(ns_index, name, kind)
    read_array.__doc__ = f"Read a {kind.variant_type.name} array node value."
    return read_array


def _make_writer(kind: WireKind) -> Callable:
    def write(self, ns_index: int, name: str, value: Any) -> None:
        self.write_value(ns_index, name, value, kind)
    write.__doc__ = f"Write a {kind.variant_type.name} node value."
    return write


def _make_array_writer(kind: WireKind) -> Callable:
    def write_array(self, ns_index: int, name: str, values: Sequence[Any]) -> None:
        self.write_array(ns_index, name, values, kind)
    write_array.__doc__ = f"Write a {kind.variant_type.name} array node value."
    return write_array


def _make_multi_writer(kind: WireKind) -> Callable:
    def multi_write(self, ns_index: int, names: Sequence[str], values: Sequence[Any]) -> None:
        self.multi_write(ns_index, names, values, kind)
    multi_write.__doc__ = f"Write several {kind.variant_type.name} node values in one request."
    return multi_write


for _suffix, _kind in ACCESSOR_KINDS.items():
    for _prefix, _factory in (
        ("read_{}", _make_reader),
        ("read_{}_array", _make_array_reader),
        ("write_{}", _make_writer),
        ("write_{}_array", _make_array_writer),
        ("multi_write_{}", _make_multi_writer),
    ):
        _method = _factory(_kind)
        _method.__name__ = _prefix.format(_suffix)
        _method.__qualname__ = f"Client.{_method.__name__}"
        setattr(Client, _method.__name__, _method)

del _suffix, _kind, _prefix, _factory, _method


@contextmanager
def start(url: str, config: Optional[dict] = None):
    """
    Connect a new client for the duration of a ``with`` block.

    The client is always disconnected and closed on exit.

    Example:
        with start("opc.tcp://localhost:4840") as client:
            client.read_uint32(5, "uint32b")
    """
    client = Client(config)
    try:
        client.connect(url)
        yield client
    finally:
        client.disconnect()
        client.close()
