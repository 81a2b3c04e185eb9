"""Request-scoped schemas."""
