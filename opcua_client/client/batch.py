"""
Batched read/write over one request.

Both operations are all-or-nothing: a bad service result, a bad item
status, a missing value or a result count that differs from the request
count fails the whole call with StatusCodeError.
"""

from typing import Any, Sequence

from ..errors import InvalidArgumentError, StatusCodeError
from ..status import GOOD, BAD_UNEXPECTED_ERROR
from ..types import NodeIdentifier, VariantCodec, WireKind


def _build_nodes(ns_index: int, names: Sequence[str]) -> list[NodeIdentifier]:
    if not isinstance(names, (list, tuple)):
        raise InvalidArgumentError(f"Expected a list of node names, got {type(names).__name__}")
    return [NodeIdentifier(ns_index, name) for name in names]


def multi_read(stack, ns_index: int, names: Sequence[str]) -> list:
    """
    Read several nodes of one namespace in a single request.

    Values are decoded by their own Variant tag and returned in input order.

    Raises:
        InvalidArgumentError: If ``names`` is not a list of strings
        StatusCodeError: On the first failing status of the batch
    """
    nodes = _build_nodes(ns_index, names)
    if not nodes:
        return []

    status, results = stack.read_attributes([node.to_node_id() for node in nodes])
    if status != GOOD:
        raise StatusCodeError(status)
    if len(results) != len(nodes):
        raise StatusCodeError(BAD_UNEXPECTED_ERROR)

    for item_status, variant in results:
        if item_status != GOOD:
            raise StatusCodeError(item_status)
        if variant is None:
            raise StatusCodeError(BAD_UNEXPECTED_ERROR)

    return [VariantCodec.decode_tagged(variant) for _status, variant in results]


def multi_write(stack, ns_index: int, names: Sequence[str], values: Sequence[Any], kind: WireKind) -> None:
    """
    Write several nodes of one namespace in a single request.

    Every value is validated and encoded before anything is sent.

    Raises:
        InvalidArgumentError: On unequal lengths or an invalid value
        StatusCodeError: On the first failing status of the batch
    """
    nodes = _build_nodes(ns_index, names)
    if not isinstance(values, (list, tuple)):
        raise InvalidArgumentError(f"Expected a list of values, got {type(values).__name__}")
    if len(nodes) != len(values):
        raise InvalidArgumentError(
            f"names and values differ in length ({len(nodes)} != {len(values)})"
        )
    if not nodes:
        return

    variants = [VariantCodec.encode(value, kind) for value in values]
    status, results = stack.write_attributes([node.to_node_id() for node in nodes], variants)
    if status != GOOD:
        raise StatusCodeError(status)
    if len(results) != len(nodes):
        raise StatusCodeError(BAD_UNEXPECTED_ERROR)

    for item_status in results:
        if item_status != GOOD:
            raise StatusCodeError(item_status)
