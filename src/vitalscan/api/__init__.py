"""HTTP and WebSocket surface for scan sessions."""
