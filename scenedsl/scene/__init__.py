"""Scene document model.

This module provides the scene data structures, the actions that change
them, the reducer that applies actions, and hierarchy helpers.
"""

from .transform import Transform3D
from .scene import (
    Camera,
    Environment,
    Light,
    MaterialInline,
    MaterialRef,
    Scene,
    SceneObject,
    create_default_scene,
)
from .actions import Action, parse_action
from .reducer import reduce
from .tree import is_descendant, validate_hierarchy

__all__ = [
    "Transform3D",
    "Camera",
    "Environment",
    "Light",
    "MaterialInline",
    "MaterialRef",
    "Scene",
    "SceneObject",
    "create_default_scene",
    "Action",
    "parse_action",
    "reduce",
    "is_descendant",
    "validate_hierarchy",
]
