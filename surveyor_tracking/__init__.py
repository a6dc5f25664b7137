"""Surveyor tracking backend app."""
import time

# Sent to WebSocket clients so they can detect a backend restart
STARTUP_TIMESTAMP: int = int(time.time())
