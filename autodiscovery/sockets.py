"""UDP socket helpers shared by the discovery client and server."""

import logging
import socket

logger = logging.getLogger(__name__)

# Largest payload a single IPv4 UDP datagram can carry
MAX_DATAGRAM_SIZE = 65507

# How long a blocked receive waits before checking whether its socket was closed
RECEIVE_POLL_INTERVAL = 0.1


def create_udp_socket(
    address: str,
    port: int,
    allow_reuse: bool = False,
    broadcast: bool = False,
) -> socket.socket:
    """Create and bind a UDP socket.

    Args:
        address: Local address to bind ("0.0.0.0" for all interfaces).
        port: Local port to bind.
        allow_reuse: Set SO_REUSEADDR so several instances can share the port.
        broadcast: Enable sending to broadcast addresses.

    Returns:
        The bound socket, with the receive poll interval applied.

    Raises:
        OSError: If the socket cannot be bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        if allow_reuse:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if broadcast:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.bind((address, port))
        sock.settimeout(RECEIVE_POLL_INTERVAL)
    except OSError:
        sock.close()
        raise
    return sock


def is_closed(sock: socket.socket) -> bool:
    """Whether the socket has been closed."""
    return sock.fileno() == -1


def receive_datagram(sock: socket.socket) -> tuple[bytes, tuple[str, int]] | None:
    """Block until a datagram arrives or the socket is closed.

    Closing the socket from another thread is how a pending receive is
    cancelled. The error raised on the closed socket is swallowed here.

    Returns:
        (data, (host, port)), or None once the socket has been closed.
    """
    while True:
        try:
            return sock.recvfrom(MAX_DATAGRAM_SIZE)
        except socket.timeout:
            if is_closed(sock):
                return None
            continue
        except OSError as e:
            if is_closed(sock):
                logger.debug(f"Receive cancelled by socket close: {e}")
                return None
            # Transient errors such as ICMP port unreachable reports
            logger.warning(f"UDP receive failed: {e}")
