"""Projection of scenes onto external render graphs."""

from .reconcile import CollectionDiff, EntityAdapter, SceneReconciler, SyncResult, reconcile_collection
from .recorder import AdapterCall, RecordingAdapter, recording_reconciler

__all__ = [
    "CollectionDiff",
    "EntityAdapter",
    "SceneReconciler",
    "SyncResult",
    "reconcile_collection",
    "AdapterCall",
    "RecordingAdapter",
    "recording_reconciler",
]
