"""Runtime configuration, read from the environment once at import."""

import os

RPSNET_HOST = os.environ.get("RPSNET_HOST", "127.0.0.1")
RPSNET_PORT = int(os.environ.get("RPSNET_PORT", "5000"))

# Seconds between two iterations of the server's per-player outbound loop
POLL_INTERVAL = float(os.environ.get("RPSNET_POLL_INTERVAL", "0.1"))

LOG_LEVEL = os.environ.get("RPSNET_LOG_LEVEL", "INFO").upper()
