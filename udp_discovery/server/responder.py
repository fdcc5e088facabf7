"""
Discovery Responder

Answers discovery requests with a unicast record describing this service.
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from udp_discovery.discovery.codec import build_message, encode_message, is_discovery_request
from udp_discovery.shared.config import ServiceConfig
from udp_discovery.shared.constants import THREAD_JOIN_TIMEOUT
from udp_discovery.shared.exceptions import SocketSetupError
from udp_discovery.shared.protocols import AddressSelector
from udp_discovery.shared.utils import format_address, select_local_ip


logger = logging.getLogger(__name__)


def resolve_advertise_ip(
    config: ServiceConfig,
    local_ip: Optional[str] = None,
    ip_selector: Optional[AddressSelector] = None
) -> str:
    """
    Decide which IPv4 address a service publishes.

    Precedence: explicit local_ip, then config.advertise_ip, then the
    selector (interface scan by default).
    """
    if local_ip:
        return local_ip
    if config.advertise_ip:
        return config.advertise_ip
    if ip_selector is not None:
        return ip_selector()
    return select_local_ip(config.excluded_interface_prefixes)


class DiscoveryResponder:
    """
    Request-only discovery role.

    Listens on the discovery port and replies to each discovery request
    with this service's record, sent back to the requester's address.
    """

    def __init__(
        self,
        config: ServiceConfig,
        local_ip: Optional[str] = None,
        ip_selector: Optional[AddressSelector] = None,
        stop_event: Optional[threading.Event] = None
    ) -> None:
        """
        Initialize the responder.

        Args:
            config: Service configuration.
            local_ip: Address to advertise, overriding configuration and interface scan.
            ip_selector: Custom address selection strategy.
            stop_event: Cancellation signal shared with an owning role; a
                supplied event is never cleared by start().
        """
        self.config = config
        self.local_ip = resolve_advertise_ip(config, local_ip, ip_selector)
        self.responses_sent = 0
        self.requests_ignored = 0
        self._stop_event = stop_event or threading.Event()
        # start() only resets an event created here
        self._owns_stop_event = stop_event is None
        self._running = False
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def bound_port(self) -> Optional[int]:
        """Port the responder socket is bound to, once bound."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def _create_socket(self) -> socket.socket:
        sock: Optional[socket.socket] = None
        address = (self.config.bind_address, self.config.discovery_port)
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            # Allow a passive listener on the same host to share the port
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(address)
            sock.settimeout(self.config.poll_interval)
        except OSError as e:
            if sock is not None:
                sock.close()
            logger.error(f"Could not bind discovery socket on {format_address(address)}: {e}")
            raise SocketSetupError(
                f"Could not bind discovery socket: {e}",
                operation="bind",
                address=format_address(address)
            ) from e
        return sock

    def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def start(self) -> None:
        """Bind the discovery port and answer requests on a background thread."""
        if self._running:
            return

        if self._owns_stop_event:
            self._stop_event.clear()
        self._socket = self._create_socket()
        self._running = True
        self._thread = threading.Thread(target=self._serve_loop, name="discovery-responder", daemon=True)
        self._thread.start()

    def serve_forever(self) -> None:
        """
        Bind the discovery port and answer requests until stopped.

        Raises:
            SocketSetupError: If the discovery port cannot be bound.
        """
        self._socket = self._create_socket()
        self._running = True
        self._serve_loop()

    def stop(self) -> None:
        """Stop answering requests and release the socket."""
        self._stop_event.set()

        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=THREAD_JOIN_TIMEOUT)

        self._close_socket()
        self._running = False

    def is_running(self) -> bool:
        """
        Check if the responder is running.

        Returns:
            True if answering requests, False otherwise.
        """
        return self._running

    def _serve_loop(self) -> None:
        logger.info(
            f"Listening for discovery requests on port {self.bound_port} "
            f"(advertising {self.local_ip}:{self.config.service_port})"
        )
        try:
            while not self._stop_event.is_set():
                sock = self._socket
                if sock is None:
                    break
                try:
                    data, address = sock.recvfrom(self.config.buffer_size)
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._stop_event.is_set() or sock.fileno() == -1:
                        break
                    logger.warning(f"Error receiving discovery request: {e}")
                    continue

                self.handle_datagram(data, address)
        finally:
            self._close_socket()
            self._running = False
            logger.info("Discovery responder stopped")

    def handle_datagram(self, data: bytes, address: Tuple[str, int]) -> bool:
        """
        Reply to a datagram if it is a discovery request.

        Args:
            data: Received payload.
            address: Sender address.

        Returns:
            True if a response was sent.
        """
        sender = format_address(address)
        if not is_discovery_request(data, self.config.trigger_token, self.config.trigger_match):
            self.requests_ignored += 1
            logger.debug(f"Ignoring non-discovery datagram from {sender}")
            return False

        logger.debug(f"Received discovery request from {sender}")
        payload = encode_message(build_message(
            self.config.service_name,
            self.local_ip,
            self.config.service_port,
            self.config.shared_key
        ))

        sock = self._socket
        if sock is None:
            return False

        try:
            sock.sendto(payload, address)
        except OSError as e:
            logger.warning(f"Failed to send response to {sender}: {e}")
            return False

        self.responses_sent += 1
        logger.info(f"Sent discovery response to {sender}")
        return True
