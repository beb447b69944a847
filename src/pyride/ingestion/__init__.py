"""Ingestion layer.

This package contains adapters that receive data from the REST API and the
realtime channel and turn it into typed participants and deltas.
"""

__all__: list[str] = []
