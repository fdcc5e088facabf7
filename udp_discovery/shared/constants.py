"""
Application Constants

Defines constants used throughout the discovery protocol.
"""

# Protocol constants
DISCOVERY_TOKEN = "DISCOVER"
MESSAGE_ENCODING = "utf-8"
MESSAGE_FIELDS = ("service", "ip", "port", "key")

# Trigger matching strategies for discovery requests
TRIGGER_MATCH_EXACT = "exact"
TRIGGER_MATCH_SUBSTRING = "substring"
TRIGGER_MATCH_MODES = (TRIGGER_MATCH_EXACT, TRIGGER_MATCH_SUBSTRING)

# Announcement mode names used by configuration
MODE_PERIODIC = "periodic"
MODE_LIMITED = "limited"
MODE_ON_REQUEST = "on_request"
ANNOUNCEMENT_MODES = (MODE_PERIODIC, MODE_LIMITED, MODE_ON_REQUEST)

# Default network settings
DEFAULT_DISCOVERY_PORT = 8888
BROADCAST_ADDRESS = "255.255.255.255"
DEFAULT_BIND_ADDRESS = ""
FALLBACK_LOCAL_IP = "127.0.0.1"
DEFAULT_EXCLUDED_INTERFACE_PREFIXES = ("lo", "docker")

# Buffer and limit constants
DEFAULT_BUFFER_SIZE = 4096
MIN_PORT = 0
MAX_PORT = 65535

# Timing constants
DEFAULT_DISCOVERY_TIMEOUT = 5.0
DEFAULT_ANNOUNCE_INTERVAL = 30
DEFAULT_ANNOUNCE_COUNT = 5
DEFAULT_SEND_TIMEOUT = 1.0
DEFAULT_POLL_INTERVAL = 1.0
THREAD_JOIN_TIMEOUT = 2.0

# Log format constants
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
