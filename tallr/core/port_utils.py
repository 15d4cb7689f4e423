"""Port validation and availability checks for the gateway."""

import socket
from typing import Tuple


def check_port_availability(port: int, host: str = "127.0.0.1") -> Tuple[bool, str]:
    """Check if the gateway can bind to ``host:port``.

    Returns:
        Tuple of (available, message); the message is empty when available
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, port))
            return (True, "")
    except OSError as e:
        # errno 48 (macOS), 98 (Linux), 10048 (Windows)
        if e.errno in (48, 98, 10048):
            return (
                False,
                f"Port {port} is already in use. Is another Tallr instance running? "
                f"Try --port {port + 1}",
            )
        return (False, f"Cannot bind to port {port}: {e}")


def validate_port_range(port: int) -> Tuple[bool, str]:
    """Validate that the port is a non-privileged TCP port."""
    if port < 1024:
        return (False, f"Port {port} requires elevated privileges. Use a port >= 1024")
    if port > 65535:
        return (False, f"Port {port} is out of range (max 65535)")
    return (True, "")


def is_loopback_host(host: str) -> bool:
    return host in ("127.0.0.1", "localhost", "::1")
