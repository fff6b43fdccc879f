"""Core infrastructure: configuration, database, logging, errors and middleware."""
