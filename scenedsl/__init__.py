"""SceneDSL - Declarative scene engine for 3D editors.

A single versioned scene document changed only through named actions,
with bounded undo/redo and incremental reconciliation onto an external
render graph.
"""

__version__ = "0.1.0"

from .core.config import EngineConfig
from .engine import ReentrantDispatchError, SceneEngine
from .render.reconcile import EntityAdapter, SceneReconciler
from .scene.actions import parse_action
from .scene.reducer import reduce
from .scene.scene import Scene, SceneObject, create_default_scene

__all__ = [
    "EngineConfig",
    "ReentrantDispatchError",
    "SceneEngine",
    "EntityAdapter",
    "SceneReconciler",
    "parse_action",
    "reduce",
    "Scene",
    "SceneObject",
    "create_default_scene",
]
