"""HTTP / WebSocket surface of the orchestrator."""

from bulkspine.api.app import create_app

__all__ = ["create_app"]
