"""Shared infrastructure: configuration, database, storage, logging, metrics."""
