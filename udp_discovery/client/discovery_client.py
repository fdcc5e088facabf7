"""
Discovery Client

Broadcasts a discovery request and collects authenticated responses until timeout.
"""

import logging
import socket
import time
from typing import Dict, Iterable, List, Optional, Tuple

from udp_discovery.discovery.codec import decode_message, encode_request
from udp_discovery.shared.config import ClientConfig
from udp_discovery.shared.exceptions import DiscoveryRunError, SocketSetupError
from udp_discovery.shared.models import (
    Classification,
    DiscoveryResult,
    RunState,
    ServerRecord,
)
from udp_discovery.shared.utils import format_address, group_by


logger = logging.getLogger(__name__)


class DiscoveryRun:
    """
    State of one discovery session.

    Holds at most one ServerRecord per endpoint. Repeated valid responses
    from a known endpoint only bump duplicate_count.
    """

    def __init__(self, expected_key: str) -> None:
        self.expected_key = expected_key
        self.records: Dict[str, ServerRecord] = {}
        self.invalid_count = 0
        self.malformed_count = 0
        self.duplicate_count = 0

    def process(self, data: bytes, source: Optional[Tuple[str, int]] = None) -> Tuple[Classification, Optional[ServerRecord]]:
        """
        Classify a datagram and fold it into the run.

        Args:
            data: Raw payload.
            source: Sender address, if known.

        Returns:
            The classification and the record created by this datagram,
            which is None for non-valid payloads and duplicates.
        """
        sender = format_address(source) if source else "unknown sender"
        result = decode_message(data, self.expected_key)

        if result.classification is Classification.MALFORMED:
            self.malformed_count += 1
            logger.debug(f"Malformed response from {sender}: {result.reason}")
            return result.classification, None

        if result.classification in (Classification.INCOMPLETE, Classification.INVALID_KEY):
            self.invalid_count += 1
            logger.debug(f"Rejected response from {sender}: {result.reason}")
            return result.classification, None

        message = result.message
        if message is None:
            return result.classification, None

        if message.endpoint in self.records:
            self.duplicate_count += 1
            logger.debug(f"Duplicate response from {message.endpoint}")
            return result.classification, None

        record = ServerRecord.from_message(message, source_address=source)
        self.records[record.endpoint] = record
        logger.info(f"Server discovered: {record.endpoint} ({record.service})")
        return result.classification, record

    def to_result(self, elapsed_seconds: float = 0.0) -> DiscoveryResult:
        """Snapshot the run as a DiscoveryResult."""
        return DiscoveryResult(
            records=dict(self.records),
            invalid_count=self.invalid_count,
            malformed_count=self.malformed_count,
            duplicate_count=self.duplicate_count,
            elapsed_seconds=elapsed_seconds
        )


class DiscoveryClient:
    """
    One-shot discovery of services on the local network.

    Each call to discover() owns its own socket and run state.
    """

    def __init__(self, config: ClientConfig) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration carrying the expected shared key.
        """
        self.config = config
        self.state = RunState.IDLE

    def _create_socket(self) -> socket.socket:
        sock: Optional[socket.socket] = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.config.bind_address, 0))
        except OSError as e:
            if sock is not None:
                sock.close()
            self.state = RunState.FATAL_ERROR
            raise SocketSetupError(f"Could not set up discovery socket: {e}", operation="bind") from e
        return sock

    def discover(self, timeout: Optional[float] = None) -> DiscoveryResult:
        """
        Broadcast a discovery request and collect responses.

        Args:
            timeout: Collection window in seconds. Defaults to config.timeout.

        Returns:
            DiscoveryResult; an empty one when nothing answered.

        Raises:
            SocketSetupError: If the socket cannot be set up.
            DiscoveryRunError: If sending the request or receiving fails
                with anything other than a timeout.
        """
        if timeout is None:
            timeout = self.config.timeout

        self.state = RunState.IDLE
        run = DiscoveryRun(self.config.expected_key)
        target = (self.config.broadcast_address, self.config.discovery_port)
        started = time.monotonic()

        sock = self._create_socket()
        try:
            try:
                sock.sendto(encode_request(self.config.request_token), target)
            except OSError as e:
                self.state = RunState.FATAL_ERROR
                logger.error(f"Failed to send discovery request to {format_address(target)}: {e}")
                raise DiscoveryRunError(
                    f"Failed to send discovery request: {e}",
                    operation="send",
                    address=format_address(target)
                ) from e

            self.state = RunState.REQUEST_SENT
            logger.info(f"Sent discovery request to {format_address(target)}, waiting {timeout}s for responses")

            deadline = started + timeout
            self.state = RunState.LISTENING
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.state = RunState.TIMED_OUT
                    break
                try:
                    sock.settimeout(remaining)
                    data, address = sock.recvfrom(self.config.buffer_size)
                except socket.timeout:
                    self.state = RunState.TIMED_OUT
                    break
                except OSError as e:
                    self.state = RunState.FATAL_ERROR
                    logger.error(f"Network error during discovery: {e}")
                    raise DiscoveryRunError(f"Network error during discovery: {e}", operation="receive") from e

                run.process(data, address)
        finally:
            sock.close()

        result = run.to_result(elapsed_seconds=time.monotonic() - started)
        logger.info(
            f"Discovery complete: {len(result.records)} server(s), {result.invalid_count} invalid, "
            f"{result.malformed_count} malformed, {result.duplicate_count} duplicate"
        )
        return result


def aggregate_by_service(records: Iterable[ServerRecord]) -> Dict[str, List[ServerRecord]]:
    """
    Group records by service name for presentation.

    Accepts either a record mapping's values or any iterable of records;
    records inside each group are ordered by endpoint.

    Returns:
        Service name to records, services sorted by name.
    """
    if isinstance(records, dict):
        records = records.values()
    groups = group_by(records, key=lambda record: record.service)
    return {
        service: sorted(groups[service], key=lambda record: (record.ip, record.port))
        for service in sorted(groups)
    }
