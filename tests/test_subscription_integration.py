"""
Subscription tests against the reference server.
"""

import pytest

from opcua_client import Client


def drive_until(client, condition, attempts=20, timeout_ms=250):
    """Drive the client until ``condition()`` holds or attempts run out."""
    for _ in range(attempts):
        client.drive_once(timeout_ms)
        if condition():
            return True
    return False


def make_client(reference_server, extended):
    client = Client(config={"subscription": {"extended_decoding": extended,
                                             "publishing_interval_ms": 100},
                            "monitoring": {"sampling_interval_ms": 50}})
    client.connect(reference_server.endpoint_url)
    return client


@pytest.fixture
def extended_client(reference_server):
    client = make_client(reference_server, extended=True)
    yield client
    client.disconnect()
    client.close()


@pytest.fixture
def default_client(reference_server):
    client = make_client(reference_server, extended=False)
    yield client
    client.disconnect()
    client.close()


def test_server_side_change_delivered_once(reference_server, extended_client):
    ns = reference_server.namespace_index
    events = []
    extended_client.after_data_changed(lambda *args: events.append(args))

    subscription_id = extended_client.create_subscription()
    assert subscription_id is not None
    monitored_item_id = extended_client.add_monitored_item(subscription_id, ns, "uint32b")
    assert monitored_item_id is not None

    # Initial value notification
    assert drive_until(extended_client, lambda: events)
    assert events[0][4] == 1000
    events.clear()

    reference_server.write_value("uint32b", 4243)
    assert drive_until(extended_client, lambda: events)
    extended_client.drive_once(300)

    assert len(events) == 1
    sub_id, mon_id, server_time, source_time, value = events[0]
    assert (sub_id, mon_id) == (subscription_id, monitored_item_id)
    assert value == 4243
    # Monitored items request both timestamps
    assert source_time is not None and source_time.tzinfo is not None
    assert server_time is not None and server_time.tzinfo is not None


def test_default_decoding_limits(reference_server, default_client):
    ns = reference_server.namespace_index
    values = {}
    item_names = {}
    default_client.after_data_changed(
        lambda sub_id, mon_id, server_time, source_time, value: values.__setitem__(item_names[mon_id], value)
    )

    subscription_id = default_client.create_subscription()
    for name in ("true_var", "string_hello"):
        item_names[default_client.add_monitored_item(subscription_id, ns, name)] = name

    assert drive_until(default_client, lambda: len(values) == 2)
    assert values == {"true_var": True, "string_hello": None}


def test_monitoring_unknown_node_returns_none(reference_server, default_client):
    subscription_id = default_client.create_subscription()
    assert default_client.add_monitored_item(subscription_id, reference_server.namespace_index, "nope") is None
