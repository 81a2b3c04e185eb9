"""Status-change event channel on Redis Streams."""
