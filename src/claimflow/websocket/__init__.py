"""Live push of notifications over WebSocket."""
