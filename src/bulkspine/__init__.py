"""
bulk-spine: bulk job orchestration against remote record-creation APIs.

Rows are dispatched to a remote API with bounded concurrency and pacing,
under live pause / resume / end control, with per-row results streamed to
the controlling connection.

Packages:
    core        logging, errors, settings, event bus
    execution   registry, delays, executors, orchestrator
    monitoring  consumer-side timer reconciliation
    api         FastAPI app with the WebSocket control channel
    cli         ``bulkspine`` command line
"""

__version__ = "0.1.0"
