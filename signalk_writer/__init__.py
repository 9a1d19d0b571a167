"""
Signal K Writer - Time-series ingestion for vessel telemetry

Routes Signal K delta updates into flat time-series points, derives
true wind from apparent wind and vessel motion, and flushes batches
to a time-series store.
"""

__version__ = "1.0.0"
