"""
Data Layer - Delta routing, true wind derivation, and batched storage.
"""

from .delta import Delta, Update, PathValue, Point, parse_timestamp
from .field_extractor import FieldExtractor
from .true_wind import TrueWindEngine, WindChannel, true_wind
from .batch_flusher import BatchFlusher
from .delta_router import DeltaRouter
from .point_store import BatchSink, PointStore

__all__ = [
    "Delta",
    "Update",
    "PathValue",
    "Point",
    "parse_timestamp",
    "FieldExtractor",
    "TrueWindEngine",
    "WindChannel",
    "true_wind",
    "BatchFlusher",
    "DeltaRouter",
    "BatchSink",
    "PointStore"
]
