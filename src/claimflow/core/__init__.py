"""Core infrastructure: configuration, logging, results, persistence, identity."""
