"""
Run the reference server standalone.

Usage:
    python -m opcua_client.server [endpoint_url]
"""

import sys
import time

from ..logging import configure_logging, log_info
from .config import DEFAULT_ENDPOINT
from .runner import ReferenceServer


def main(argv: list[str]) -> int:
    configure_logging(level="INFO")
    endpoint_url = argv[1] if len(argv) > 1 else DEFAULT_ENDPOINT

    server = ReferenceServer(endpoint_url)
    if not server.start():
        return 1

    log_info(f"Reference namespace index: {server.namespace_index}")
    log_info("Press Ctrl+C to stop")
    try:
        while server.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        log_info("Server stopped by user (Ctrl+C)")
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
