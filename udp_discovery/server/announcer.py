"""
Announcement Engine

Broadcasts this service's discovery record according to an announcement mode.
"""

import logging
import socket
import threading
from typing import Optional

from udp_discovery.discovery.codec import build_message, encode_message
from udp_discovery.server.responder import DiscoveryResponder, resolve_advertise_ip
from udp_discovery.shared.config import ServiceConfig
from udp_discovery.shared.constants import THREAD_JOIN_TIMEOUT
from udp_discovery.shared.exceptions import BroadcastError
from udp_discovery.shared.models import AnnouncementMode, Limited, OnRequest, Periodic
from udp_discovery.shared.protocols import AddressSelector


logger = logging.getLogger(__name__)


class AnnouncementEngine:
    """
    Server-side announcement role.

    Periodic mode broadcasts until stopped, Limited mode broadcasts a fixed
    number of times and returns, and OnRequest mode hands over to a
    DiscoveryResponder without sending anything itself.
    """

    def __init__(
        self,
        config: ServiceConfig,
        mode: Optional[AnnouncementMode] = None,
        local_ip: Optional[str] = None,
        ip_selector: Optional[AddressSelector] = None,
        stop_event: Optional[threading.Event] = None
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Service configuration.
            mode: Announcement mode. Defaults to the one described by config.
            local_ip: Address to advertise, overriding configuration and interface scan.
            ip_selector: Custom address selection strategy.
            stop_event: Cancellation signal checked between iterations; a
                supplied event is never cleared by start().
        """
        self.config = config
        self.mode = mode if mode is not None else config.announcement_mode()
        self.local_ip = resolve_advertise_ip(config, local_ip, ip_selector)
        self.sent_count = 0
        self.failed_count = 0
        self._stop_event = stop_event or threading.Event()
        # start() only resets an event created here
        self._owns_stop_event = stop_event is None
        self._running = False
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._responder: Optional[DiscoveryResponder] = None

    @property
    def attempt_count(self) -> int:
        """Number of announcements attempted, successful or not."""
        return self.sent_count + self.failed_count

    @property
    def responder(self) -> Optional[DiscoveryResponder]:
        """The delegated responder in OnRequest mode."""
        return self._responder

    def _create_socket(self) -> socket.socket:
        sock: Optional[socket.socket] = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.config.bind_address, 0))
            sock.settimeout(self.config.send_timeout)
        except OSError as e:
            if sock is not None:
                sock.close()
            logger.error(f"Could not set up broadcast socket: {e}")
            raise BroadcastError(f"Could not set up broadcast socket: {e}", operation="bind") from e
        return sock

    def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def _create_responder(self) -> DiscoveryResponder:
        self._responder = DiscoveryResponder(
            self.config,
            local_ip=self.local_ip,
            stop_event=self._stop_event
        )
        return self._responder

    def run(self) -> None:
        """
        Run the configured mode in the calling thread.

        Periodic and OnRequest block until stop() is called from another
        thread; Limited returns after its last announcement.

        Raises:
            BroadcastError: If the broadcast socket cannot be set up.
            SocketSetupError: If OnRequest mode cannot bind the discovery port.
        """
        if isinstance(self.mode, OnRequest):
            logger.info("Announcement mode is on-request, delegating to discovery responder")
            self._create_responder().serve_forever()
            return

        self._socket = self._create_socket()
        self._running = True
        self._announce_loop()

    def start(self) -> None:
        """
        Set up the socket and announce on a background thread.

        Socket setup happens before the thread starts, so setup errors are
        raised to the caller.
        """
        if self.is_running():
            return

        if self._owns_stop_event:
            self._stop_event.clear()

        if isinstance(self.mode, OnRequest):
            logger.info("Announcement mode is on-request, delegating to discovery responder")
            self._create_responder().start()
            return

        self._socket = self._create_socket()
        self._running = True
        self._thread = threading.Thread(target=self._announce_loop, name="announcement-engine", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop announcing and release the socket."""
        self._stop_event.set()

        if self._responder is not None:
            self._responder.stop()

        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=THREAD_JOIN_TIMEOUT)

        self._close_socket()
        self._running = False

    def is_running(self) -> bool:
        """
        Check if the engine is announcing or answering requests.

        Returns:
            True if running, False otherwise.
        """
        if self._responder is not None:
            return self._responder.is_running()
        return self._running

    def _announce_loop(self) -> None:
        mode = self.mode
        try:
            if isinstance(mode, Periodic):
                self._announce_periodic(mode)
            elif isinstance(mode, Limited):
                self._announce_limited(mode)
            else:
                raise TypeError(f"Unsupported announcement mode for broadcasting: {mode!r}")
        finally:
            self._close_socket()
            self._running = False

    def _announce_periodic(self, mode: Periodic) -> None:
        logger.info(
            f"Announcing {self.config.service_name} at {self.local_ip}:{self.config.service_port} "
            f"every {mode.interval_seconds}s"
        )
        while not self._stop_event.is_set():
            self._send_announcement()
            if self._stop_event.wait(mode.interval_seconds):
                break
        logger.info("Periodic announcements stopped")

    def _announce_limited(self, mode: Limited) -> None:
        logger.info(
            f"Announcing {self.config.service_name} at {self.local_ip}:{self.config.service_port} "
            f"{mode.max_count} times"
        )
        for sequence in range(1, mode.max_count + 1):
            if self._stop_event.is_set():
                break
            self._send_announcement(sequence, mode.max_count)
            if sequence < mode.max_count and self._stop_event.wait(mode.interval_seconds):
                break
        logger.info(f"Finished announcing after {self.attempt_count} attempts")

    def _send_announcement(self, sequence: Optional[int] = None, total: Optional[int] = None) -> bool:
        """
        Broadcast one announcement.

        Send failures are logged and counted, never raised.

        Returns:
            True if the datagram was handed to the network.
        """
        sock = self._socket
        if sock is None:
            return False

        payload = encode_message(build_message(
            self.config.service_name,
            self.local_ip,
            self.config.service_port,
            self.config.shared_key
        ))
        target = (self.config.broadcast_address, self.config.discovery_port)
        progress = f" ({sequence}/{total})" if sequence is not None else ""

        try:
            sock.sendto(payload, target)
        except OSError as e:
            self.failed_count += 1
            logger.warning(f"Failed to send broadcast{progress}: {e}")
            return False

        self.sent_count += 1
        logger.info(f"Announced server at {self.local_ip}:{self.config.service_port}{progress}")
        return True


def start_discovery_service(
    config: ServiceConfig,
    stop_event: Optional[threading.Event] = None,
    local_ip: Optional[str] = None
) -> AnnouncementEngine:
    """
    Run the discovery role described by config in the calling thread.

    Args:
        config: Validated service configuration.
        stop_event: Optional cancellation signal for graceful shutdown.
        local_ip: Address to advertise, overriding configuration and interface scan.

    Returns:
        The engine after it finished, for inspecting its counters.
    """
    engine = AnnouncementEngine(config, local_ip=local_ip, stop_event=stop_event)
    engine.run()
    return engine
