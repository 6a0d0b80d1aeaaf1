"""Core infrastructure: configuration, database, security and observability."""
