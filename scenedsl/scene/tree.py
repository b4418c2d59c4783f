"""Hierarchy queries and integrity checks for the scene object tree.

The reducer uses ``is_descendant`` before any reparenting so that a move can
never create a parent/child cycle. The remaining helpers answer structural
questions about a scene without changing it.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .scene import Scene, SceneObject


def _index(scene: Scene) -> dict[str, SceneObject]:
    return {obj.id: obj for obj in scene.objects}


def ancestors(scene: Scene, object_id: str) -> list[str]:
    """IDs of an object's ancestors, nearest first.

    Follows ``parent`` pointers and stops at a missing parent or at an id
    already visited, so corrupted data cannot loop forever.
    """
    index = _index(scene)
    chain: list[str] = []
    seen = {object_id}
    node = index.get(object_id)
    while node is not None and node.parent is not None and node.parent not in seen:
        chain.append(node.parent)
        seen.add(node.parent)
        node = index.get(node.parent)
    return chain


def is_descendant(scene: Scene, candidate_id: str, node_id: str) -> bool:
    """Check whether ``candidate_id`` lies in the subtree rooted at ``node_id``.

    Walks parent pointers upward from the candidate, which costs O(depth).

    Args:
        scene: Scene to inspect
        candidate_id: Object that might be below ``node_id``
        node_id: Root of the subtree

    Returns:
        True if ``node_id`` is a proper ancestor of ``candidate_id``
    """
    return node_id in ancestors(scene, candidate_id)


def get_children(scene: Scene, parent_id: str) -> list[SceneObject]:
    """Child objects of a parent, in ``children`` order. Missing ids are skipped."""
    index = _index(scene)
    parent = index.get(parent_id)
    if parent is None or not parent.children:
        return []
    return [index[child_id] for child_id in parent.children if child_id in index]


def get_parent(scene: Scene, child_id: str) -> SceneObject | None:
    """Parent object of a child, or None for roots and unknown ids."""
    child = scene.get_object(child_id)
    if child is None or child.parent is None:
        return None
    return scene.get_object(child.parent)


def descendants(scene: Scene, object_id: str) -> list[str]:
    """IDs of every object below ``object_id``, depth first, in children order."""
    index = _index(scene)
    result: list[str] = []
    seen = {object_id}
    stack = list(reversed(index[object_id].children or ())) if object_id in index else []
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        result.append(current)
        node = index.get(current)
        if node is not None and node.children:
            stack.extend(reversed(node.children))
    return result


def roots(scene: Scene) -> list[SceneObject]:
    """Objects without a parent, in document order."""
    return [obj for obj in scene.objects if obj.parent is None]


def world_matrix(scene: Scene, object_id: str) -> NDArray[np.float64]:
    """Compose the local transforms from the root down to an object.

    Args:
        scene: Scene to inspect
        object_id: Object to compute the world matrix for

    Returns:
        4x4 world transformation matrix

    Raises:
        KeyError: If the object does not exist
    """
    index = _index(scene)
    if object_id not in index:
        raise KeyError(object_id)

    matrix = index[object_id].transform.to_matrix()
    for ancestor_id in ancestors(scene, object_id):
        ancestor = index.get(ancestor_id)
        if ancestor is None:
            break
        matrix = ancestor.transform.to_matrix() @ matrix
    return matrix


def validate_hierarchy(scene: Scene) -> tuple[bool, list[str]]:
    """Validate the parent/children invariants of a scene.

    Checks for duplicate ids, dangling parent and child references,
    parent/children links that do not point back at each other, and cycles.

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    index: dict[str, SceneObject] = {}

    for obj in scene.objects:
        if obj.id in index:
            errors.append(f"Duplicate object id '{obj.id}'")
        index[obj.id] = obj

    for obj in scene.objects:
        if obj.parent is not None:
            parent = index.get(obj.parent)
            if parent is None:
                errors.append(f"Object '{obj.id}' has missing parent '{obj.parent}'")
            elif obj.id not in (parent.children or ()):
                errors.append(
                    f"Object '{obj.id}' names parent '{obj.parent}' "
                    f"but is not among its children"
                )

        for child_id in obj.children or ():
            child = index.get(child_id)
            if child is None:
                errors.append(f"Object '{obj.id}' has missing child '{child_id}'")
            elif child.parent != obj.id:
                errors.append(
                    f"Object '{obj.id}' lists child '{child_id}' "
                    f"whose parent is '{child.parent}'"
                )

    for obj in scene.objects:
        node = obj
        seen = {obj.id}
        while node.parent is not None and node.parent in index:
            if node.parent in seen:
                errors.append(f"Object '{obj.id}' is part of a parent cycle")
                break
            seen.add(node.parent)
            node = index[node.parent]

    for selected in scene.selection:
        if selected not in index:
            errors.append(f"Selection references missing object '{selected}'")

    return len(errors) == 0, errors
