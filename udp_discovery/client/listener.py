"""
Passive Listener

Watches announcements on the discovery port and keeps a live service catalog.
"""

import logging
import socket
import threading
from typing import Dict, List, Optional, Tuple

from udp_discovery.client.discovery_client import DiscoveryRun, aggregate_by_service
from udp_discovery.shared.config import ClientConfig
from udp_discovery.shared.constants import THREAD_JOIN_TIMEOUT
from udp_discovery.shared.exceptions import SocketSetupError
from udp_discovery.shared.models import Classification, DiscoveryResult, ServerRecord
from udp_discovery.shared.protocols import RecordCallback
from udp_discovery.shared.utils import format_address


logger = logging.getLogger(__name__)


class ServiceCatalog:
    """Thread-safe, continuously updated view of announced services."""

    def __init__(self, expected_key: str, on_record: Optional[RecordCallback] = None) -> None:
        self._run = DiscoveryRun(expected_key)
        self._lock = threading.Lock()
        self._on_record = on_record

    def process(self, data: bytes, source: Optional[Tuple[str, int]] = None) -> Classification:
        """
        Fold one datagram into the catalog.

        The on_record callback fires outside the lock for each new endpoint.
        """
        with self._lock:
            classification, record = self._run.process(data, source)

        if record is not None and self._on_record is not None:
            try:
                self._on_record(record)
            except Exception:
                logger.exception(f"Record callback failed for {record.endpoint}")
        return classification

    def snapshot(self) -> DiscoveryResult:
        """Get a consistent copy of the records and counters."""
        with self._lock:
            return self._run.to_result()

    def records(self) -> List[ServerRecord]:
        """Get all known records."""
        with self._lock:
            return list(self._run.records.values())

    def by_service(self) -> Dict[str, List[ServerRecord]]:
        """Get known records grouped by service name."""
        return aggregate_by_service(self.records())

    def __len__(self) -> int:
        with self._lock:
            return len(self._run.records)


class PassiveListener:
    """
    Long-lived monitoring role.

    Binds the discovery port, never replies and never times out; every
    received datagram is classified into the catalog.
    """

    def __init__(
        self,
        config: ClientConfig,
        on_record: Optional[RecordCallback] = None,
        stop_event: Optional[threading.Event] = None
    ) -> None:
        """
        Initialize the listener.

        Args:
            config: Client configuration carrying the expected shared key.
            on_record: Called once for each newly discovered endpoint.
            stop_event: Cancellation signal checked between receives; a
                supplied event is never cleared by start().
        """
        self.config = config
        self.catalog = ServiceCatalog(config.expected_key, on_record=on_record)
        self._stop_event = stop_event or threading.Event()
        # start() only resets an event created here
        self._owns_stop_event = stop_event is None
        self._running = False
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def bound_port(self) -> Optional[int]:
        """Port the listener socket is bound to, once bound."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def _create_socket(self) -> socket.socket:
        sock: Optional[socket.socket] = None
        address = (self.config.bind_address, self.config.discovery_port)
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind(address)
            sock.settimeout(self.config.poll_interval)
        except OSError as e:
            if sock is not None:
                sock.close()
            logger.error(f"Could not bind listener socket on {format_address(address)}: {e}")
            raise SocketSetupError(
                f"Could not bind listener socket: {e}",
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
        """Bind the discovery port and listen on a background thread."""
        if self._running:
            return

        if self._owns_stop_event:
            self._stop_event.clear()
        self._socket = self._create_socket()
        self._running = True
        self._thread = threading.Thread(target=self._listen_loop, name="passive-listener", daemon=True)
        self._thread.start()

    def listen(self) -> None:
        """
        Bind the discovery port and listen until stopped.

        Raises:
            SocketSetupError: If the discovery port cannot be bound.
        """
        self._socket = self._create_socket()
        self._running = True
        self._listen_loop()

    def stop(self) -> None:
        """Stop listening and release the socket."""
        self._stop_event.set()

        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=THREAD_JOIN_TIMEOUT)

        self._close_socket()
        self._running = False

    def is_running(self) -> bool:
        """
        Check if the listener is running.

        Returns:
            True if listening, False otherwise.
        """
        return self._running

    def _listen_loop(self) -> None:
        logger.info(f"Listening for announcements on port {self.bound_port}")
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
                    logger.warning(f"Error receiving announcement: {e}")
                    continue

                self.catalog.process(data, address)
        finally:
            self._close_socket()
            self._running = False
            logger.info("Passive listener stopped")
