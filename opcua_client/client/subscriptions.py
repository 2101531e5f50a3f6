"""
Subscription engine.

Creates subscriptions and data-change monitored items, and turns the
notifications delivered by the stack into observer calls of the form
``(subscription_id, monitored_item_id, server_time, source_time, value)``.
"""

from datetime import datetime
from typing import Any, Callable, Optional

from asyncua import ua

from ..logging import log_debug, log_info, log_warn
from ..status import GOOD, status_code_to_name
from ..types import DataChangeEvent, MonitoredItem, NodeIdentifier, UNSUPPORTED, VariantCodec, to_utc
from .stack import CallbackContext


DataChangeObserver = Callable[[int, int, Optional[datetime], Optional[datetime], Any], None]


def on_data_change(
    context: CallbackContext,
    subscription_id: int,
    monitored_item_id: int,
    variant: Optional[ua.Variant],
    server_timestamp: Optional[datetime],
    source_timestamp: Optional[datetime],
) -> None:
    """Data-change callback installed on the stack."""
    context.subscriptions.dispatch(
        subscription_id, monitored_item_id, variant, server_timestamp, source_timestamp
    )


def on_subscription_status(context: CallbackContext, subscription_id: int, status_code: int) -> None:
    """Subscription status callback installed on the stack."""
    context.subscriptions.handle_subscription_status(subscription_id, status_code)


class SubscriptionEngine:
    """
    Subscription and monitored-item lifecycle for one session.

    Holds no state beyond the ids handed out by the server; events are
    never queued here and are dropped when no observer is registered.
    """

    def __init__(self, session, config: dict):
        """
        Initialize subscription engine.

        Args:
            session: SessionManager owning the stack
            config: Complete client configuration dictionary
        """
        self.session = session
        self.subscription_params = dict(config["subscription"])
        self.monitoring_params = dict(config["monitoring"])
        self.extended_decoding = bool(self.subscription_params.get("extended_decoding", False))
        self._on_data_changed: Optional[DataChangeObserver] = None

    def bind(self, context: CallbackContext) -> None:
        context.subscriptions = self

    def set_data_change_observer(self, callback: Optional[DataChangeObserver]) -> None:
        self._on_data_changed = callback

    def create_subscription(self) -> Optional[int]:
        """
        Create a subscription with the configured default parameters.

        Returns:
            Subscription id, or None if the server refused
        """
        status, subscription_id = self.session.stack.create_subscription(self.subscription_params)
        if status != GOOD:
            log_warn(f"Create subscription failed: {status_code_to_name(status)}")
            return None
        log_info(f"Created subscription {subscription_id}")
        return subscription_id

    def add_monitored_item(self, subscription_id: int, node: NodeIdentifier) -> Optional[MonitoredItem]:
        """
        Register a data-change monitored item on one node.

        Args:
            subscription_id: Id returned by create_subscription
            node: Node to monitor

        Returns:
            MonitoredItem, or None if the server refused
        """
        status, monitored_item_id = self.session.stack.create_monitored_item(
            subscription_id, node.to_node_id(), self.monitoring_params
        )
        if status != GOOD:
            log_warn(f"Monitor {node} failed: {status_code_to_name(status)}")
            return None
        log_debug(f"Monitoring {node} as item {monitored_item_id} of subscription {subscription_id}")
        return MonitoredItem(monitored_item_id, subscription_id, node)

    def drive_once(self, timeout_ms: int) -> int:
        """
        Run the stack for at most ``timeout_ms`` and deliver notifications.

        Observer exceptions propagate out of this call.

        Returns:
            Status code reported by the stack
        """
        return self.session.stack.iterate(timeout_ms)

    def dispatch(
        self,
        subscription_id: int,
        monitored_item_id: int,
        variant: Optional[ua.Variant],
        server_timestamp: Optional[datetime],
        source_timestamp: Optional[datetime],
    ) -> None:
        """Decode one notification and hand it to the observer."""
        if self._on_data_changed is None:
            return

        value = VariantCodec.decode_untyped(variant, extended=self.extended_decoding)
        event = DataChangeEvent(
            subscription_id=subscription_id,
            monitored_item_id=monitored_item_id,
            server_timestamp=to_utc(server_timestamp) if server_timestamp else None,
            source_timestamp=to_utc(source_timestamp) if source_timestamp else None,
            value=None if value is UNSUPPORTED else value,
        )
        self._on_data_changed(*event.as_args())

    def handle_subscription_status(self, subscription_id: int, status_code: int) -> None:
        # Deletion and inactivity are acknowledged only
        log_info(
            f"Subscription {subscription_id} status: {status_code_to_name(status_code)}"
        )
