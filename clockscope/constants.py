"""Application-wide constants for clockscope.

Shared defaults for the protocols, the CLI and the monitoring plugin output.
"""

# ============================================================================
# PROTOCOL PORTS
# ============================================================================
NTP_PORT = 123
NTS_KE_PORT = 4460
PTP_EVENT_PORT = 319
PTP_GENERAL_PORT = 320
PTP_DEFAULT_DOMAIN = 0

# ============================================================================
# PROBE DEFAULTS
# ============================================================================
DEFAULT_TIMEOUT_S = 5.0
DEFAULT_INTERVAL_S = 1.0
DEFAULT_COUNT = 1
NTP_VERSION = 3

# ============================================================================
# OUTPUT
# ============================================================================
OUTPUT_FORMATS = ("text", "json", "simple", "json-short")
DEFAULT_FORMAT = "text"
JSON_SCHEMA_VERSION = 1

# ============================================================================
# CONFIGURATION
# ============================================================================
APP_NAME = "clockscope"
CONFIG_KEYS = ("timeout", "format", "ipv6_only")
