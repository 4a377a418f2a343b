"""Core infrastructure: configuration, logging, storage, caching."""
