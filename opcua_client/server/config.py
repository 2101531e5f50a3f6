"""
Reference server configuration.

The reference namespace mirrors the fixture the client is validated
against: a set of scalar and array variables in namespace index 5.
"""

DEFAULT_ENDPOINT = "opc.tcp://127.0.0.1:4840/"

# Registered in order; the server already holds indices 0 and 1, so the
# last one ends up at index 5.
REFERENCE_NAMESPACES = ["ns2", "ns3", "ns4", "ns5"]


def _scalar(name: str, datatype: str, value) -> dict:
    return {"name": name, "datatype": datatype, "initial_value": value}


def get_reference_variables() -> list[dict]:
    """Scalar variables of the reference namespace."""
    return [
        _scalar("uint32a", "UInt32", 0),
        _scalar("uint32b", "UInt32", 1000),
        _scalar("uint32c", "UInt32", 2000),
        _scalar("uint16a", "UInt16", 0),
        _scalar("uint16b", "UInt16", 100),
        _scalar("uint16c", "UInt16", 200),
        _scalar("true_var", "Boolean", True),
        _scalar("false_var", "Boolean", False),
        _scalar("byte_zero", "Byte", 0),
        _scalar("byte_42", "Byte", 42),
        _scalar("byte_max", "Byte", 255),
        _scalar("byte_test", "Byte", 128),
        _scalar("string_empty", "String", ""),
        _scalar("string_hello", "String", "Hello World"),
        _scalar("string_test", "String", "Test String Value"),
        _scalar("float_zero", "Float", 0.0),
        _scalar("float_pi", "Float", 3.14159),
        _scalar("float_negative", "Float", -123.456),
        _scalar("double_zero", "Double", 0.0),
        _scalar("double_pi", "Double", 3.141592653589793),
        _scalar("double_negative", "Double", -987.654321),
        _scalar("double_large", "Double", 1.23456789e100),
    ]


def get_reference_arrays() -> list[dict]:
    """Array variables of the reference namespace."""
    return [
        _scalar("int32_array", "Int32", [1, 2, 3, 4, 5]),
        _scalar("int32_array_empty", "Int32", []),
        _scalar("float_array", "Float", [1.1, 2.2, 3.3]),
        _scalar("bool_array", "Boolean", [True, False, True, True, False]),
        _scalar("byte_array", "Byte", [10, 20, 30, 40]),
        _scalar("uint32_array", "UInt32", [100, 200, 300]),
        _scalar("double_array", "Double", [1.111, 2.222, 3.333, 4.444]),
    ]


def get_reference_config(
    endpoint_url: str = DEFAULT_ENDPOINT,
    library_log_level: str = "WARNING"
) -> dict:
    """
    Get the reference server configuration.

    Args:
        endpoint_url: Endpoint the server listens on
        library_log_level: Level applied to the asyncua loggers

    Returns:
        Configuration dictionary
    """
    return {
        "server": {
            "endpoint_url": endpoint_url,
            "name": "opcua-client reference server",
        },
        "address_space": {
            "namespaces": list(REFERENCE_NAMESPACES),
            "variables": get_reference_variables(),
            "arrays": get_reference_arrays(),
        },
        "library_log_level": library_log_level,
    }
