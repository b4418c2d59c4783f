"""Scene reducer.

Pure function: (scene, action) -> scene. No I/O; the current time comes from
an injectable clock and ids are generated only when an action does not carry
one.

When an action changes nothing (unknown type, unknown id, invalid reference,
would-be cycle, invalid payload, or a change that leaves everything equal)
the reducer returns the very same Scene object it was given. Callers rely on
``result is scene`` to decide whether anything happened.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from ..core.config import ReducerParams
from .actions import (
    ACTIONS,
    Action,
    AddLight,
    AddMaterial,
    AddObject,
    ApplyMaterial,
    Batch,
    DuplicateObject,
    LoadScene,
    MoveObject,
    RemoveLight,
    RemoveObject,
    ReorderChildren,
    Select,
    UpdateCamera,
    UpdateEnvironment,
    UpdateLight,
    UpdateMaterial,
    UpdateObject,
    parse_action,
)
from .scene import (
    Light,
    MaterialInline,
    MaterialRef,
    Scene,
    SceneObject,
    create_default_scene,
    new_id,
    now_iso,
)
from .tree import ancestors, descendants, is_descendant

logger = logging.getLogger(__name__)

DUPLICATE_OFFSET = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class _Context:
    params: ReducerParams
    clock: Callable[[], str]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reduce(
    scene: Scene,
    action: Action | dict[str, Any],
    params: ReducerParams | None = None,
    clock: Callable[[], str] | None = None,
) -> Scene:
    """Apply one action to a scene.

    Args:
        scene: Current scene (never modified)
        action: Action model or its dict form
        params: Reducer policies (defaults to ReducerParams())
        clock: Returns the timestamp stamped into ``metadata.modified``

    Returns:
        The next scene, or ``scene`` itself if the action was a no-op
    """
    ctx = _Context(params=params or ReducerParams(), clock=clock or now_iso)
    return _reduce(scene, action, ctx)


def _reduce(scene: Scene, action: Action | dict[str, Any], ctx: _Context) -> Scene:
    try:
        if isinstance(action, dict) or (type(action) is Action and action.type in ACTIONS):
            action = parse_action(action if isinstance(action, dict) else action.model_dump())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Ignoring malformed action: {e}")
        return scene

    handler = _HANDLERS.get(action.type)
    if handler is None:
        logger.debug(f"Ignoring unknown action type: {action.type}")
        return scene

    try:
        return handler(scene, action, ctx)
    except ValidationError as e:
        logger.warning(f"Rejected {action.type}: {e.error_count()} invalid field(s)")
        return scene


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _touch(scene: Scene, ctx: _Context, **changes: Any) -> Scene:
    """Copy the scene with ``changes`` and a fresh ``metadata.modified``."""
    metadata = scene.metadata.model_copy(update={"modified": ctx.clock()})
    return scene.model_copy(update={**changes, "metadata": metadata})


def _merge(model: BaseModel, changes: dict[str, Any], protected: tuple[str, ...] = ()) -> Any:
    """Shallow-merge ``changes`` onto a model, validating the result."""
    data = dict(model)
    data.update({k: v for k, v in changes.items() if k not in protected})
    return type(model).model_validate(data)


def _drop_none(data: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    """Remove keys whose value is None so model defaults apply."""
    return {k: v for k, v in data.items() if not (k in keys and v is None)}


def _apply_updates(scene: Scene, updates: dict[str, dict[str, Any]]) -> tuple[SceneObject, ...] | None:
    """Apply per-object field updates.

    Returns the new objects tuple, or None if no object actually changed.
    """
    changed = False
    objects = []
    for obj in scene.objects:
        update = updates.get(obj.id)
        if update:
            new_obj = obj.model_copy(update=update)
            if new_obj != obj:
                changed = True
                obj = new_obj
        objects.append(obj)
    return tuple(objects) if changed else None


def _unique(ids: Any) -> tuple[str, ...]:
    """De-duplicate while preserving order."""
    seen: set[str] = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return tuple(result)


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------


def _add_object(scene: Scene, action: AddObject, ctx: _Context) -> Scene:
    data = _drop_none(
        dict(action.object),
        ("type", "transform", "visible", "cast_shadow", "receive_shadow", "user_data"),
    )
    object_id = data.get("id") or new_id()
    if scene.has_object(object_id):
        logger.debug(f"ADD_OBJECT rejected: id '{object_id}' already exists")
        return scene

    data["id"] = object_id
    data["name"] = data.get("name") or f"Object_{object_id}"
    obj = SceneObject.model_validate(data)

    if obj.parent == object_id:
        logger.debug(f"ADD_OBJECT rejected: '{object_id}' cannot be its own parent")
        return scene

    # Listed children are adopted only if they exist and are roots that are
    # not above the new object; ids that do not exist are dropped.
    above = {obj.parent, *ancestors(scene, obj.parent)} if obj.parent else set()
    adopted = []
    for child_id in _unique(obj.children or ()):
        child = scene.get_object(child_id)
        if child is None:
            continue
        if child_id == object_id or child.parent is not None or child_id in above:
            logger.debug(f"ADD_OBJECT rejected: '{object_id}' cannot adopt '{child_id}'")
            return scene
        adopted.append(child_id)
    obj = obj.model_copy(update={"children": tuple(adopted) or None})

    updates: dict[str, dict[str, Any]] = {child_id: {"parent": object_id} for child_id in adopted}
    # Link into an existing parent; a parent that does not exist yet is allowed
    parent = scene.get_object(obj.parent) if obj.parent else None
    if parent is not None and object_id not in (parent.children or ()):
        updates[parent.id] = {"children": (*(parent.children or ()), object_id)}

    objects = _apply_updates(scene, updates) or scene.objects
    return _touch(scene, ctx, objects=(*objects, obj))


def _update_object(scene: Scene, action: UpdateObject, ctx: _Context) -> Scene:
    target = scene.get_object(action.id)
    if target is None:
        return scene

    updated = _merge(target, action.changes, protected=("id", "parent", "children"))
    if updated == target:
        return scene

    objects = tuple(updated if obj.id == action.id else obj for obj in scene.objects)
    return _touch(scene, ctx, objects=objects)


def _remove_object(scene: Scene, action: RemoveObject, ctx: _Context) -> Scene:
    if not scene.has_object(action.id):
        return scene

    removed = {action.id}
    if ctx.params.removal_policy == "cascade":
        removed.update(descendants(scene, action.id))

    objects = []
    orphaned = 0
    for obj in scene.objects:
        if obj.id in removed:
            continue
        update: dict[str, Any] = {}
        if obj.children and any(child in removed for child in obj.children):
            update["children"] = tuple(c for c in obj.children if c not in removed)
        if obj.parent in removed:
            update["parent"] = None
            orphaned += 1
        objects.append(obj.model_copy(update=update) if update else obj)

    if orphaned:
        logger.debug(f"REMOVE_OBJECT '{action.id}': {orphaned} child object(s) moved to root")

    selection = tuple(s for s in scene.selection if s not in removed)
    return _touch(scene, ctx, objects=tuple(objects), selection=selection)


def _duplicate_object(scene: Scene, action: DuplicateObject, ctx: _Context) -> Scene:
    original = scene.get_object(action.id)
    if original is None:
        return scene

    copy_id = action.new_id or new_id()
    if scene.has_object(copy_id):
        return scene

    duplicate = original.model_copy(update={
        "id": copy_id,
        "name": f"{original.name}_Copy",
        "transform": original.transform.translated(DUPLICATE_OFFSET),
        "children": None,
        "user_data": copy.deepcopy(original.user_data),
    })

    updates: dict[str, dict[str, Any]] = {}
    parent = scene.get_object(original.parent) if original.parent else None
    if parent is not None:
        siblings = list(parent.children or ())
        if original.id in siblings:
            siblings.insert(siblings.index(original.id) + 1, copy_id)
        else:
            siblings.append(copy_id)
        updates[parent.id] = {"children": tuple(siblings)}
    elif original.parent is not None:
        duplicate = duplicate.model_copy(update={"parent": None})

    objects = _apply_updates(scene, updates) or scene.objects
    return _touch(scene, ctx, objects=(*objects, duplicate))


def _move_object(scene: Scene, action: MoveObject, ctx: _Context) -> Scene:
    target = scene.get_object(action.id)
    if target is None:
        return scene

    parent_id = action.parent_id
    new_parent = None
    if parent_id is not None:
        new_parent = scene.get_object(parent_id)
        if new_parent is None or parent_id == action.id:
            return scene
        # The new parent must not sit inside the subtree being moved
        if is_descendant(scene, parent_id, action.id):
            logger.debug(f"MOVE_OBJECT rejected: '{parent_id}' is below '{action.id}'")
            return scene

    updates: dict[str, dict[str, Any]] = {}

    old_parent = scene.get_object(target.parent) if target.parent else None
    if old_parent is not None and action.id in (old_parent.children or ()):
        updates[old_parent.id] = {
            "children": tuple(c for c in old_parent.children if c != action.id)
        }

    if new_parent is not None:
        base = updates.get(new_parent.id, {}).get("children", new_parent.children or ())
        siblings = [c for c in base if c != action.id]
        if action.index is not None and 0 <= action.index <= len(siblings):
            siblings.insert(action.index, action.id)
        else:
            siblings.append(action.id)
        updates[new_parent.id] = {"children": tuple(siblings)}

    if target.parent != parent_id:
        updates[action.id] = {"parent": parent_id}

    objects = _apply_updates(scene, updates)
    if objects is None:
        return scene
    return _touch(scene, ctx, objects=objects)


def _reorder_children(scene: Scene, action: ReorderChildren, ctx: _Context) -> Scene:
    parent = scene.get_object(action.parent_id)
    if parent is None:
        return scene

    current = parent.children or ()
    ordered = _unique(c for c in action.child_ids if c in current)
    if ordered == current:
        return scene

    updates: dict[str, dict[str, Any]] = {parent.id: {"children": ordered}}
    # Children left out of the new order no longer belong to this parent
    for child_id in current:
        if child_id not in ordered:
            child = scene.get_object(child_id)
            if child is not None and child.parent == parent.id:
                updates[child_id] = {"parent": None}

    objects = _apply_updates(scene, updates)
    if objects is None:
        return scene
    return _touch(scene, ctx, objects=objects)


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------


def _add_material(scene: Scene, action: AddMaterial, ctx: _Context) -> Scene:
    data = _drop_none(
        dict(action.material),
        ("type", "color", "metalness", "roughness", "opacity"),
    )
    material_id = data.get("id") or new_id()
    if scene.get_material(material_id) is not None:
        logger.debug(f"ADD_MATERIAL rejected: id '{material_id}' already exists")
        return scene

    data["id"] = material_id
    data["name"] = data.get("name") or f"Material_{material_id}"
    material = MaterialInline.model_validate(data)
    return _touch(scene, ctx, materials=(*scene.materials, material))


def _update_material(scene: Scene, action: UpdateMaterial, ctx: _Context) -> Scene:
    target = scene.get_material(action.id)
    if target is None:
        return scene

    updated = _merge(target, action.changes, protected=("id",))
    if updated == target:
        return scene

    materials = tuple(updated if m.id == action.id else m for m in scene.materials)
    return _touch(scene, ctx, materials=materials)


def _apply_material(scene: Scene, action: ApplyMaterial, ctx: _Context) -> Scene:
    if scene.get_material(action.material_id) is None:
        logger.debug(f"APPLY_MATERIAL rejected: no material '{action.material_id}'")
        return scene

    ref = MaterialRef(id=action.material_id)
    objects = _apply_updates(scene, {object_id: {"material": ref} for object_id in action.object_ids})
    if objects is None:
        return scene
    return _touch(scene, ctx, objects=objects)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def _select(scene: Scene, action: Select, ctx: _Context) -> Scene:
    existing = set(scene.object_ids)
    valid = [i for i in action.ids if i in existing]

    if action.mode == "set":
        selection = _unique(valid)
    elif action.mode == "add":
        selection = _unique([*scene.selection, *valid])
    else:
        first = action.ids[0] if action.ids else None
        if first is None or first not in existing:
            return scene
        if first in scene.selection:
            selection = tuple(s for s in scene.selection if s != first)
        else:
            selection = (*scene.selection, first)

    if selection == scene.selection:
        return scene
    return scene.model_copy(update={"selection": selection})


def _clear_selection(scene: Scene, action: Action, ctx: _Context) -> Scene:
    if not scene.selection:
        return scene
    return scene.model_copy(update={"selection": ()})


# ---------------------------------------------------------------------------
# Camera, environment, lights
# ---------------------------------------------------------------------------


def _update_camera(scene: Scene, action: UpdateCamera, ctx: _Context) -> Scene:
    camera = _merge(scene.camera, action.changes)
    if camera == scene.camera:
        return scene
    return _touch(scene, ctx, camera=camera)


def _update_environment(scene: Scene, action: UpdateEnvironment, ctx: _Context) -> Scene:
    environment = _merge(scene.environment, action.changes)
    if environment == scene.environment:
        return scene
    return _touch(scene, ctx, environment=environment)


def _add_light(scene: Scene, action: AddLight, ctx: _Context) -> Scene:
    data = _drop_none(dict(action.light), ("type", "color", "intensity", "cast_shadow"))
    light_id = data.get("id") or new_id()
    if scene.get_light(light_id) is not None:
        logger.debug(f"ADD_LIGHT rejected: id '{light_id}' already exists")
        return scene

    data["id"] = light_id
    data["name"] = data.get("name") or f"Light_{light_id}"
    light = Light.model_validate(data)
    return _touch(scene, ctx, lights=(*scene.lights, light))


def _update_light(scene: Scene, action: UpdateLight, ctx: _Context) -> Scene:
    target = scene.get_light(action.id)
    if target is None:
        return scene

    updated = _merge(target, action.changes, protected=("id",))
    if updated == target:
        return scene

    lights = tuple(updated if light.id == action.id else light for light in scene.lights)
    return _touch(scene, ctx, lights=lights)


def _remove_light(scene: Scene, action: RemoveLight, ctx: _Context) -> Scene:
    if scene.get_light(action.id) is None:
        return scene
    lights = tuple(light for light in scene.lights if light.id != action.id)
    return _touch(scene, ctx, lights=lights)


# ---------------------------------------------------------------------------
# Whole scene
# ---------------------------------------------------------------------------


def _reset_scene(scene: Scene, action: Action, ctx: _Context) -> Scene:
    return create_default_scene(timestamp=ctx.clock())


def _load_scene(scene: Scene, action: LoadScene, ctx: _Context) -> Scene:
    return _touch(action.scene.snapshot(), ctx)


def _batch(scene: Scene, action: Batch, ctx: _Context) -> Scene:
    result = scene
    for nested in action.actions:
        result = _reduce(result, nested, ctx)
    return result


_HANDLERS: dict[str, Callable[[Scene, Any, _Context], Scene]] = {
    "ADD_OBJECT": _add_object,
    "UPDATE_OBJECT": _update_object,
    "REMOVE_OBJECT": _remove_object,
    "DUPLICATE_OBJECT": _duplicate_object,
    "MOVE_OBJECT": _move_object,
    "REORDER_CHILDREN": _reorder_children,
    "ADD_MATERIAL": _add_material,
    "UPDATE_MATERIAL": _update_material,
    "APPLY_MATERIAL": _apply_material,
    "SELECT": _select,
    "CLEAR_SELECTION": _clear_selection,
    "UPDATE_CAMERA": _update_camera,
    "UPDATE_ENVIRONMENT": _update_environment,
    "ADD_LIGHT": _add_light,
    "UPDATE_LIGHT": _update_light,
    "REMOVE_LIGHT": _remove_light,
    "RESET_SCENE": _reset_scene,
    "LOAD_SCENE": _load_scene,
    "BATCH": _batch,
}
