"""
Runtime configuration for AdScreener notifications.

Values are read from the environment once at import time. Client code
reads them as defaults; every one can be overridden per instance.
"""
import os

# ── Endpoints ─────────────────────────────────────────────────
REALTIME_URL = os.environ.get("ADSCREENER_REALTIME_URL", "ws://localhost:8000/ws")
API_URL      = os.environ.get("ADSCREENER_API_URL", "http://localhost:8000")

# ── Server ────────────────────────────────────────────────────
HTTP_PORT        = int(os.environ.get("ADSCREENER_PORT", "8000"))
INTERNAL_PORT    = int(os.environ.get("ADSCREENER_INTERNAL_PORT", "6969"))
LOG_LEVEL        = os.environ.get("ADSCREENER_LOG_LEVEL", "INFO")
WS_PING_INTERVAL = int(os.environ.get("ADSCREENER_WS_PING_INTERVAL", "30"))

# ── Fixed tuning ──────────────────────────────────────────────
RECONNECT_DELAY   = 5     # seconds between reconnect attempts, no backoff
MAX_NOTIFICATIONS = 50    # newest entries kept in client state
REQUEST_TIMEOUT   = 10    # seconds for REST calls to the store
CONNECT_TIMEOUT   = 5     # seconds for the WS handshake
