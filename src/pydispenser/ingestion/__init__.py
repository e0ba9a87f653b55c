"""Ingestion layer.

This package contains the adapters that turn raw RemoteGateway payloads
(registry lists, analytics and realtime overlays, cached snapshots) into
typed, identifier-normalized records.
"""

__all__: list[str] = []
