"""Real-time chat relay: session handling, connection registry, and broadcast."""
