"""REST and WebSocket surface of the service."""
