"""Discovery client: broadcast a query and collect server replies.

A search sends one UDP datagram to the broadcast address and then listens on
the reply port for a fixed window. Every datagram received in that window is
turned into a record by the caller-supplied factory. Replies are not
deduplicated and their order carries no meaning.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Generic

from .config import ClientConfig
from .records import (
    Address,
    RecordFactory,
    ServerInformation,
    T,
    normalize_payload,
)
from .sockets import create_udp_socket, receive_datagram

logger = logging.getLogger(__name__)

ServerFoundHandler = Callable[[Any], None]


def _check_timeout(timeout: float) -> None:
    # NaN compares false here as well
    if not timeout > 0:
        raise ValueError(f"timeout must be greater than 0, got {timeout}")


class _ReplyProtocol(asyncio.DatagramProtocol):
    """Feeds replies received on the event loop into the client."""

    def __init__(self, client: "AutoDiscoveryClient", loop: asyncio.AbstractEventLoop):
        self._client = client
        self.closed: asyncio.Future[None] = loop.create_future()

    def datagram_received(self, data: bytes, addr: Address) -> None:
        record = self._client._collect(addr, data)
        if record is not None:
            self._client._notify_server_found(record)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"UDP error during discovery: {exc}")

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.closed.done():
            self.closed.set_result(None)


class AutoDiscoveryClient(Generic[T]):
    """Finds discovery servers on the local subnet.

    The client sends its query to ``send_port`` and expects servers to reply
    on ``receive_port``, so a server must be configured with the same pair
    swapped. Only one search may run per client at a time.
    """

    def __init__(
        self,
        send_port: int,
        receive_port: int | None = None,
        address: str = "0.0.0.0",
        allow_socket_reuse: bool = False,
        record_factory: RecordFactory = ServerInformation,
        broadcast_address: str = "<broadcast>",
    ):
        """Initialize the discovery client.

        Args:
            send_port: Port the query is broadcast to (the servers' receive port).
            receive_port: Port to listen on for replies. Defaults to send_port.
            address: Local address to bind the reply socket to.
            allow_socket_reuse: Allow other sockets to bind the reply port too.
            record_factory: Builds a record from (address, reply bytes).
            broadcast_address: Destination address for the query.
        """
        self.send_port = send_port
        self.receive_port = send_port if receive_port is None else receive_port
        self.address = address
        self.allow_socket_reuse = allow_socket_reuse
        self.record_factory = record_factory
        self.broadcast_address = broadcast_address

        self._discovered: list[T] = []
        self._rejected = 0
        self._lock = threading.Lock()

        self._finding_servers = False
        self._state_lock = threading.Lock()

        self._server_found_handlers: list[ServerFoundHandler] = []

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        record_factory: RecordFactory = ServerInformation,
    ) -> "AutoDiscoveryClient":
        """Create a client from a ClientConfig."""
        return cls(
            send_port=config.send_port,
            receive_port=config.receive_port,
            address=config.address,
            allow_socket_reuse=config.allow_socket_reuse,
            record_factory=record_factory,
            broadcast_address=config.broadcast_address,
        )

    @property
    def finding_servers(self) -> bool:
        """Whether a search is currently running."""
        return self._finding_servers

    @property
    def rejected_replies(self) -> int:
        """Replies dropped during the last search because the factory failed."""
        return self._rejected

    def add_server_found_handler(self, handler: ServerFoundHandler) -> None:
        """Register a handler called with each record found by find_servers_async."""
        self._server_found_handlers.append(handler)

    def remove_server_found_handler(self, handler: ServerFoundHandler) -> None:
        if handler in self._server_found_handlers:
            self._server_found_handlers.remove(handler)

    def find_servers(self, timeout: float, message: bytes | None = None) -> tuple[T, ...]:
        """Broadcast a query and collect replies, blocking for the whole window.

        Args:
            timeout: Length of the discovery window in seconds.
            message: Query payload. None sends an empty datagram.

        Returns:
            Records for every reply received during the window.

        Raises:
            ValueError: If timeout is not positive.
            RuntimeError: If a search is already running on this client.
            OSError: If the reply port cannot be bound.
        """
        _check_timeout(timeout)
        message = normalize_payload(message)

        self._begin_search()
        try:
            sock = create_udp_socket(
                self.address,
                self.receive_port,
                allow_reuse=self.allow_socket_reuse,
                broadcast=True,
            )
            receiver = threading.Thread(
                target=self._receive_loop,
                args=(sock,),
                name=f"autodiscovery-client-{self.receive_port}",
                daemon=True,
            )
            receiver.start()

            try:
                self._send_query(sock, message)
                time.sleep(timeout)
            finally:
                sock.close()
                # Wait for the receiver to see the close before reading results
                receiver.join()

            return self._snapshot()
        finally:
            self._end_search()

    async def find_servers_async(
        self, timeout: float, message: bytes | None = None
    ) -> tuple[T, ...]:
        """Async variant of find_servers that does not block the event loop.

        Each record is also passed to the registered server found handlers
        as it arrives.
        """
        _check_timeout(timeout)
        message = normalize_payload(message)

        self._begin_search()
        try:
            loop = asyncio.get_running_loop()
            sock = create_udp_socket(
                self.address,
                self.receive_port,
                allow_reuse=self.allow_socket_reuse,
                broadcast=True,
            )
            try:
                # Replies queue on the bound socket until the endpoint reads them
                self._send_query(sock, message)
                transport, protocol = await loop.create_datagram_endpoint(
                    lambda: _ReplyProtocol(self, loop), sock=sock
                )
            except BaseException:
                sock.close()
                raise

            try:
                await asyncio.sleep(timeout)
            finally:
                transport.close()
                await protocol.closed

            return self._snapshot()
        finally:
            self._end_search()

    def _begin_search(self) -> None:
        with self._state_lock:
            if self._finding_servers:
                raise RuntimeError(
                    "find_servers can only run once at a time, "
                    "wait for the previous search to complete"
                )
            self._finding_servers = True

        with self._lock:
            self._discovered.clear()
            self._rejected = 0

        logger.debug(
            f"Searching for servers on port {self.send_port} "
            f"(replies on {self.receive_port})"
        )

    def _send_query(self, sock, message: bytes) -> None:
        try:
            sock.sendto(message, (self.broadcast_address, self.send_port))
        except OSError as e:
            logger.warning(
                f"Failed to send discovery query to "
                f"{self.broadcast_address}:{self.send_port}: {e}"
            )

    def _end_search(self) -> None:
        with self._state_lock:
            self._finding_servers = False

    def _receive_loop(self, sock) -> None:
        while True:
            received = receive_datagram(sock)
            if received is None:
                break
            data, addr = received
            self._collect(addr, data)

    def _collect(self, address: Address, data: bytes) -> T | None:
        """Build a record for a reply and add it to the discovered set."""
        try:
            record = self.record_factory(address, data)
        except Exception:
            logger.warning(
                f"Dropping reply from {address[0]}:{address[1]}: record factory failed",
                exc_info=True,
            )
            with self._lock:
                self._rejected += 1
            return None

        with self._lock:
            self._discovered.append(record)

        logger.debug(f"Reply from {address[0]}:{address[1]} ({len(data)} bytes)")
        return record

    def _notify_server_found(self, record: T) -> None:
        for handler in list(self._server_found_handlers):
            try:
                handler(record)
            except Exception as e:
                logger.error(f"Server found handler failed: {e}", exc_info=True)

    def _snapshot(self) -> tuple[T, ...]:
        with self._lock:
            found = tuple(self._discovered)
        logger.info(f"Discovery finished: {len(found)} server(s) found")
        return found
