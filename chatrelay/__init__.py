"""
Chat relay server.

Authenticated clients exchange text messages over WebSocket; every message is
appended to a bounded durable history and broadcast to all live connections.
"""

__version__ = "0.1.0"
