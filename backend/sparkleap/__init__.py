# backend/sparkleap/__init__.py
"""
Sparkleap KPI backend package.

This package contains:
- main: FastAPI application entrypoint
- credentials: encrypted data source credentials
- notion: Notion task sync (property mapping / paginated ingestion)
- storage: persistence layer for descriptors, tasks and snapshots
- kpi: weekly execution KPI aggregation
- usage: per-application usage limiter
"""
