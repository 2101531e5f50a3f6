"""OPC UA status code helpers."""

from asyncua import ua
from asyncua.ua.status_codes import get_name_and_doc

GOOD: int = ua.StatusCodes.Good

BAD_UNEXPECTED_ERROR: int = ua.StatusCodes.BadUnexpectedError
BAD_TIMEOUT: int = ua.StatusCodes.BadTimeout
BAD_COMMUNICATION_ERROR: int = ua.StatusCodes.BadCommunicationError
BAD_CONNECTION_CLOSED: int = ua.StatusCodes.BadConnectionClosed


def status_code_to_name(code: int) -> str:
    """
    Get the symbolic name of a status code.

    Unknown codes resolve to their severity ("Good", "Uncertain" or "Bad").
    """
    if isinstance(code, bool) or not isinstance(code, int):
        # Imported lazily: errors imports this module
        from .errors import InvalidArgumentError
        raise InvalidArgumentError(f"Status code must be an integer, got {type(code).__name__}")
    name, _doc = get_name_and_doc(code & 0xFFFFFFFF)
    return name


human_status_code = status_code_to_name


def is_good(code: int) -> bool:
    return code == GOOD
