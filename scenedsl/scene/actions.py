"""Scene actions.

An action is an immutable, named description of one intended state change.
Each action family is a pydantic model whose ``type`` field is a literal tag;
the bare ``Action`` base carries any tag at all, so actions this version does
not know about can still be parsed, recorded and passed to the reducer (which
ignores them).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .scene import Scene


class Action(BaseModel):
    """Base action. Also used for action types with no registered model."""

    type: str

    model_config = {"frozen": True, "extra": "allow"}


# -----------------------------------------------------------------------------
# Objects
# -----------------------------------------------------------------------------


class AddObject(Action):
    """Append an object built from a partial description."""

    type: Literal["ADD_OBJECT"] = "ADD_OBJECT"
    object: dict[str, Any] = Field(default_factory=dict)


class UpdateObject(Action):
    """Shallow-merge ``changes`` onto an existing object."""

    type: Literal["UPDATE_OBJECT"] = "UPDATE_OBJECT"
    id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class RemoveObject(Action):
    type: Literal["REMOVE_OBJECT"] = "REMOVE_OBJECT"
    id: str


class DuplicateObject(Action):
    """Clone an object next to the original."""

    type: Literal["DUPLICATE_OBJECT"] = "DUPLICATE_OBJECT"
    id: str
    new_id: str | None = Field(default=None, description="ID for the copy (generated if omitted)")


class MoveObject(Action):
    """Reparent an object, optionally at a position among its new siblings."""

    type: Literal["MOVE_OBJECT"] = "MOVE_OBJECT"
    id: str
    parent_id: str | None = None
    index: int | None = None


class ReorderChildren(Action):
    type: Literal["REORDER_CHILDREN"] = "REORDER_CHILDREN"
    parent_id: str
    child_ids: tuple[str, ...] = ()


# -----------------------------------------------------------------------------
# Materials
# -----------------------------------------------------------------------------


class AddMaterial(Action):
    type: Literal["ADD_MATERIAL"] = "ADD_MATERIAL"
    material: dict[str, Any] = Field(default_factory=dict)


class UpdateMaterial(Action):
    type: Literal["UPDATE_MATERIAL"] = "UPDATE_MATERIAL"
    id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class ApplyMaterial(Action):
    """Point the material of every listed object at a scene material."""

    type: Literal["APPLY_MATERIAL"] = "APPLY_MATERIAL"
    object_ids: tuple[str, ...] = ()
    material_id: str


# -----------------------------------------------------------------------------
# Selection
# -----------------------------------------------------------------------------


class Select(Action):
    """Change the selection.

    ``set`` replaces it, ``add`` unions with it and ``toggle`` flips the
    membership of the first id only.
    """

    type: Literal["SELECT"] = "SELECT"
    ids: tuple[str, ...] = ()
    mode: Literal["set", "add", "toggle"] = "set"


class ClearSelection(Action):
    type: Literal["CLEAR_SELECTION"] = "CLEAR_SELECTION"


# -----------------------------------------------------------------------------
# Camera, environment, lights
# -----------------------------------------------------------------------------


class UpdateCamera(Action):
    type: Literal["UPDATE_CAMERA"] = "UPDATE_CAMERA"
    changes: dict[str, Any] = Field(default_factory=dict)


class UpdateEnvironment(Action):
    type: Literal["UPDATE_ENVIRONMENT"] = "UPDATE_ENVIRONMENT"
    changes: dict[str, Any] = Field(default_factory=dict)


class AddLight(Action):
    type: Literal["ADD_LIGHT"] = "ADD_LIGHT"
    light: dict[str, Any] = Field(default_factory=dict)


class UpdateLight(Action):
    type: Literal["UPDATE_LIGHT"] = "UPDATE_LIGHT"
    id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class RemoveLight(Action):
    type: Literal["REMOVE_LIGHT"] = "REMOVE_LIGHT"
    id: str


# -----------------------------------------------------------------------------
# Whole-scene actions
# -----------------------------------------------------------------------------


class ResetScene(Action):
    type: Literal["RESET_SCENE"] = "RESET_SCENE"


class LoadScene(Action):
    """Replace the whole document."""

    type: Literal["LOAD_SCENE"] = "LOAD_SCENE"
    scene: Scene


class Batch(Action):
    """Several actions applied as one transition (one undo step)."""

    type: Literal["BATCH"] = "BATCH"
    actions: tuple[Action, ...] = ()

    @field_validator("actions", mode="before")
    @classmethod
    def _parse_nested(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(
                parse_action(item) if isinstance(item, dict) else item
                for item in value
            )
        return value


ACTIONS: dict[str, type[Action]] = {
    "ADD_OBJECT": AddObject,
    "UPDATE_OBJECT": UpdateObject,
    "REMOVE_OBJECT": RemoveObject,
    "DUPLICATE_OBJECT": DuplicateObject,
    "MOVE_OBJECT": MoveObject,
    "REORDER_CHILDREN": ReorderChildren,
    "ADD_MATERIAL": AddMaterial,
    "UPDATE_MATERIAL": UpdateMaterial,
    "APPLY_MATERIAL": ApplyMaterial,
    "SELECT": Select,
    "CLEAR_SELECTION": ClearSelection,
    "UPDATE_CAMERA": UpdateCamera,
    "UPDATE_ENVIRONMENT": UpdateEnvironment,
    "ADD_LIGHT": AddLight,
    "UPDATE_LIGHT": UpdateLight,
    "REMOVE_LIGHT": RemoveLight,
    "RESET_SCENE": ResetScene,
    "LOAD_SCENE": LoadScene,
    "BATCH": Batch,
}


def parse_action(data: dict[str, Any] | Action) -> Action:
    """Build an action model from its dict form.

    Unknown ``type`` tags produce a bare ``Action`` rather than an error, so
    newer documents can be replayed by older engines.

    Args:
        data: Action dict with a ``type`` key, or an existing action

    Returns:
        The matching Action subclass instance

    Raises:
        ValueError: If ``data`` is not a dict or has no ``type``
        pydantic.ValidationError: If a known action has an invalid payload
    """
    if isinstance(data, Action):
        return data
    if not isinstance(data, dict) or "type" not in data:
        raise ValueError(f"Action must be a dict with a 'type' key, got: {data!r}")

    action_cls = ACTIONS.get(data["type"], Action)
    return action_cls.model_validate(data)


def list_actions() -> list[dict]:
    """List all registered action types with descriptions.

    Returns:
        List of dicts with 'type' and 'description' keys
    """
    return [
        {
            "type": action_type,
            "description": (action_cls.__doc__ or "").strip().splitlines()[0]
            if action_cls.__doc__ else "",
        }
        for action_type, action_cls in ACTIONS.items()
    ]
