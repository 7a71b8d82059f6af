"""Endpoint middleware, an HTTP transport, metrics helpers and connection management."""

__version__ = "2.0.0"