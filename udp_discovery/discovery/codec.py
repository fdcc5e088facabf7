"""
Message Codec

Encodes and classifies the JSON records exchanged by the discovery protocol.
"""

import hmac
import json
from typing import Any, Dict

from udp_discovery.shared.constants import (
    DISCOVERY_TOKEN,
    MAX_PORT,
    MESSAGE_ENCODING,
    MESSAGE_FIELDS,
    MIN_PORT,
    TRIGGER_MATCH_EXACT,
    TRIGGER_MATCH_SUBSTRING,
)
from udp_discovery.shared.models import Classification, DecodeResult, DiscoveryMessage
from udp_discovery.shared.utils import is_valid_ipv4


def build_message(service: str, ip: str, port: int, key: str) -> DiscoveryMessage:
    """
    Build a validated discovery message.

    Raises:
        MessageValidationError: If any field is invalid.
    """
    return DiscoveryMessage(service=service, ip=ip, port=port, key=key)


def encode_message(message: DiscoveryMessage) -> bytes:
    """
    Encode a message as a JSON object with exactly the four protocol fields.

    Args:
        message: The message to encode.

    Returns:
        UTF-8 encoded payload.
    """
    payload = {
        "service": message.service,
        "ip": message.ip,
        "port": message.port,
        "key": message.key,
    }
    return json.dumps(payload, indent=2).encode(MESSAGE_ENCODING)


def encode_request(token: str = DISCOVERY_TOKEN) -> bytes:
    """Encode the literal discovery request payload."""
    return token.encode(MESSAGE_ENCODING)


def _field_error(record: Dict[str, Any]) -> str:
    """Return a description of the first missing or mistyped field, or ''."""
    for name in MESSAGE_FIELDS:
        if name not in record:
            return f"missing field '{name}'"

    service, ip, port, key = (record[name] for name in MESSAGE_FIELDS)

    if not isinstance(service, str) or not service:
        return "field 'service' must be a non-empty string"
    if not is_valid_ipv4(ip):
        return "field 'ip' must be a dotted-quad IPv4 string"
    if isinstance(port, bool) or not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        return f"field 'port' must be an integer between {MIN_PORT} and {MAX_PORT}"
    if not isinstance(key, str):
        return "field 'key' must be a string"
    return ""


def keys_match(received: str, expected: str) -> bool:
    """Compare shared keys in constant time."""
    # JSON escapes can carry lone surrogates
    return hmac.compare_digest(
        received.encode(MESSAGE_ENCODING, "surrogatepass"),
        expected.encode(MESSAGE_ENCODING, "surrogatepass")
    )


def decode_message(data: bytes, expected_key: str) -> DecodeResult:
    """
    Classify an inbound payload.

    Never raises: every outcome is reported through the classification,
    including JSON nested too deeply for the parser.
    Unknown extra fields are ignored so newer senders stay readable.

    Args:
        data: Raw datagram payload.
        expected_key: The locally configured shared key.

    Returns:
        DecodeResult with the message attached only when VALID.
    """
    try:
        record = json.loads(data.decode(MESSAGE_ENCODING))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        return DecodeResult(Classification.MALFORMED, reason=f"unparseable payload: {e}")

    if not isinstance(record, dict):
        return DecodeResult(Classification.INCOMPLETE, reason="payload is not a JSON object")

    error = _field_error(record)
    if error:
        return DecodeResult(Classification.INCOMPLETE, reason=error)

    if not keys_match(record["key"], expected_key):
        return DecodeResult(Classification.INVALID_KEY, reason="shared key does not match")

    message = DiscoveryMessage(
        service=record["service"],
        ip=record["ip"],
        port=record["port"],
        key=record["key"],
    )
    return DecodeResult(Classification.VALID, message=message)


def is_discovery_request(
    data: bytes,
    token: str = DISCOVERY_TOKEN,
    match: str = TRIGGER_MATCH_EXACT
) -> bool:
    """
    Decide whether a datagram asks services to identify themselves.

    Args:
        data: Raw datagram payload.
        token: The request token.
        match: "exact" requires the stripped payload to equal the token,
            ignoring case. "substring" accepts the token or its lowercase
            form anywhere in the payload.

    Returns:
        True if the datagram is a discovery request.
    """
    text = data.decode(MESSAGE_ENCODING, errors="replace")

    if match == TRIGGER_MATCH_EXACT:
        return text.strip().casefold() == token.casefold()
    if match == TRIGGER_MATCH_SUBSTRING:
        return token in text or token.lower() in text
    raise ValueError(f"Unknown trigger match mode: {match}")
