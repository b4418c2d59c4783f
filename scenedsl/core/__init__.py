"""Core modules for SceneDSL."""

from .config import DispatchParams, EngineConfig, HistoryParams, ReducerParams
from .history import HistoryEntry, HistoryManager, HistoryState

__all__ = [
    "DispatchParams",
    "EngineConfig",
    "HistoryParams",
    "ReducerParams",
    "HistoryEntry",
    "HistoryManager",
    "HistoryState",
]
