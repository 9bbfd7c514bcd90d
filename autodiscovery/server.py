"""Discovery server: answer client broadcasts with a fixed payload."""

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Callable

from .config import ServerConfig
from .records import Address, normalize_payload
from .sockets import create_udp_socket, is_closed, receive_datagram

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientMessage:
    """A query received from a discovery client."""

    address: Address  # (host, port) the query came from
    data: bytes  # Raw query payload


ClientMessageHandler = Callable[[ClientMessage], None]


class AutoDiscoveryServer:
    """Listens for discovery queries and replies to each one.

    Replies go to the querying host's IP on ``send_port``, not to the port the
    query came from, so clients must listen on that port.
    """

    def __init__(
        self,
        receive_port: int,
        message: bytes | None,
        send_port: int | None = None,
        address: str = "0.0.0.0",
        allow_socket_reuse: bool = False,
        on_client_message: ClientMessageHandler | None = None,
    ):
        """Initialize the discovery server.

        Args:
            receive_port: Port to listen on for client broadcasts.
            message: Payload to reply with. None replies with an empty datagram.
            send_port: Port replies are sent to. Defaults to receive_port.
            address: Local address to listen on.
            allow_socket_reuse: Allow other sockets to bind the receive port too.
            on_client_message: Optional handler for received queries.
        """
        self.receive_port = receive_port
        self.send_port = receive_port if send_port is None else send_port
        self.address = address
        self.allow_socket_reuse = allow_socket_reuse
        self._response_message = normalize_payload(message)

        self._handlers: list[ClientMessageHandler] = []
        if on_client_message:
            self._handlers.append(on_client_message)

        # Listening state
        self._listening = False
        self._sock: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        on_client_message: ClientMessageHandler | None = None,
    ) -> "AutoDiscoveryServer":
        """Create a server from a ServerConfig."""
        return cls(
            receive_port=config.receive_port,
            message=config.message,
            send_port=config.send_port,
            address=config.address,
            allow_socket_reuse=config.allow_socket_reuse,
            on_client_message=on_client_message,
        )

    @property
    def is_listening(self) -> bool:
        """Whether the server is listening for and answering broadcasts."""
        return self._listening

    @property
    def response_message(self) -> bytes:
        return self._response_message

    def add_client_message_handler(self, handler: ClientMessageHandler) -> None:
        """Register a handler called with every query received.

        Handlers run on the server's receive thread, one at a time.
        """
        self._handlers.append(handler)

    def remove_client_message_handler(self, handler: ClientMessageHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def start(self) -> None:
        """Start listening for client broadcasts.

        Raises:
            RuntimeError: If the server is already listening.
            OSError: If the receive port cannot be bound.
        """
        with self._state_lock:
            if self._listening:
                raise RuntimeError("The discovery server is already listening")

            sock = create_udp_socket(
                self.address,
                self.receive_port,
                allow_reuse=self.allow_socket_reuse,
            )
            self._sock = sock
            self._thread = threading.Thread(
                target=self._receive_loop,
                args=(sock,),
                name=f"autodiscovery-server-{self.receive_port}",
                daemon=True,
            )
            self._listening = True
            self._thread.start()

        logger.info(
            f"Discovery server listening on {self.address}:{self.receive_port} "
            f"(replies to port {self.send_port})"
        )

    def stop(self) -> None:
        """Stop listening and release the socket.

        Raises:
            RuntimeError: If the server is not listening.
        """
        with self._state_lock:
            if not self._listening:
                raise RuntimeError("The discovery server is not listening")

            sock, thread = self._sock, self._thread
            self._sock = None
            self._thread = None
            self._listening = False

        sock.close()

        # A handler may stop the server from the receive thread itself
        if thread is not threading.current_thread():
            thread.join()

        logger.info("Discovery server stopped")

    def _receive_loop(self, sock: socket.socket) -> None:
        """Handle queries one at a time until the socket is closed."""
        while True:
            received = receive_datagram(sock)
            if received is None or is_closed(sock):
                break

            data, addr = received
            self._notify(ClientMessage(address=addr, data=data))

            try:
                sock.sendto(self._response_message, (addr[0], self.send_port))
            except OSError as e:
                if is_closed(sock):
                    break
                logger.warning(f"Failed to reply to {addr[0]}:{self.send_port}: {e}")

        logger.debug(f"Receive loop on port {self.receive_port} finished")

    def _notify(self, message: ClientMessage) -> None:
        logger.debug(
            f"Query from {message.address[0]}:{message.address[1]} "
            f"({len(message.data)} bytes)"
        )
        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception as e:
                logger.error(f"Client message handler failed: {e}", exc_info=True)
