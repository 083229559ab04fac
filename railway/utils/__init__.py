"""Shared utilities: configuration, exceptions, run tracing and retries."""
