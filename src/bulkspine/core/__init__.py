"""Ambient primitives: structured logging, error types, settings and the event bus."""
