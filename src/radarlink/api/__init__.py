"""HTTP and WebSocket interface for client sessions."""
