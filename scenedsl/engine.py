"""Scene engine facade.

The engine owns the current scene and is the only way to change it: every
change is an action passed to ``dispatch``, reduced to a new scene, recorded
in the undo history and announced to subscribers. Renderers and other
collaborators subscribe to the engine (or poll it once per frame) and never
touch the scene directly.

There is no global engine; create one and hand it to whatever owns the
render loop.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Iterable

import numpy as np
from numpy.typing import NDArray
from pydantic import ValidationError

from .core.config import EngineConfig
from .core.history import HistoryManager
from .scene import tree
from .scene.actions import (
    Action,
    AddLight,
    AddMaterial,
    AddObject,
    ApplyMaterial,
    Batch,
    ClearSelection,
    DuplicateObject,
    LoadScene,
    MoveObject,
    RemoveLight,
    RemoveObject,
    ReorderChildren,
    ResetScene,
    Select,
    UpdateCamera,
    UpdateEnvironment,
    UpdateLight,
    UpdateMaterial,
    UpdateObject,
    parse_action,
)
from .scene.reducer import reduce
from .scene.scene import Scene, SceneObject, create_default_scene, new_id, now_iso

logger = logging.getLogger(__name__)

Listener = Callable[[Scene], None]


class ReentrantDispatchError(RuntimeError):
    """Raised when the engine is re-entered in a way its policy forbids."""


class SceneEngine:
    """Dispatch/subscribe/undo facade over the scene reducer."""

    def __init__(
        self,
        initial_scene: Scene | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], str] | None = None,
    ):
        """Initialize engine.

        Args:
            initial_scene: Starting scene (a default scene if omitted)
            config: Engine configuration
            clock: Timestamp source for scene metadata
        """
        self.config = config or EngineConfig.default()
        self._clock = clock or now_iso

        if initial_scene is not None:
            self._scene = initial_scene.snapshot()
        else:
            self._scene = create_default_scene(timestamp=self._clock())

        self._listeners: list[Listener] = []
        self._deferred: deque[Action] = deque()
        self._deferred_count = 0

        self.history = HistoryManager(
            restore=self._restore,
            max_entries=self.config.history.max_entries,
            clock=self._clock,
        )

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    @property
    def scene(self) -> Scene:
        """Current scene (read-only)."""
        return self._scene

    def get_scene(self) -> Scene:
        """Return the current scene. Callers must treat it as read-only."""
        return self._scene

    def dispatch(self, action: Action | dict[str, Any]) -> bool:
        """Apply an action to the current scene.

        If the scene changes, the transition is recorded in the history and
        every subscriber is called with the new scene. A dispatch made from a
        subscriber is queued or rejected according to ``config.dispatch``.

        Args:
            action: Action model or its dict form

        Returns:
            True if the scene changed, False for no-ops and queued actions

        Raises:
            ReentrantDispatchError: If re-entrancy is rejected or the queue is full
        """
        try:
            action = parse_action(action)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid action: {e.error_count()} invalid field(s)")
            return False
        except ValueError as e:
            logger.warning(f"Ignoring malformed action: {e}")
            return False

        if self.history.is_busy:
            return self._defer(action)

        self._deferred_count = 0
        try:
            changed = self._apply(action)
            self._drain()
        except Exception:
            self._deferred.clear()
            raise
        return changed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with the new scene after each change.

        Listeners run synchronously, in registration order.

        Args:
            listener: Callable receiving the new Scene

        Returns:
            Function that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, action: Action) -> bool:
        before = self._scene
        with self.history.applying():
            after = reduce(before, action, self.config.reducer, self._clock)
            if after is before:
                logger.debug(f"{action.type} changed nothing")
                return False

            self.history.commit(action, before, after)
            self._scene = after
            self._notify()
        return True

    def _defer(self, action: Action) -> bool:
        policy = self.config.dispatch
        if policy.reentrancy == "reject":
            raise ReentrantDispatchError(
                f"dispatch({action.type}) called while engine is {self.history.state.value}"
            )
        if self._deferred_count >= policy.max_deferred:
            raise ReentrantDispatchError(
                f"More than {policy.max_deferred} re-entrant dispatches queued"
            )

        self._deferred.append(action)
        self._deferred_count += 1
        logger.debug(f"Deferred {action.type} until current operation finishes")
        return False

    def _drain(self) -> None:
        while self._deferred:
            self._apply(self._deferred.popleft())

    def _restore(self, scene: Scene) -> None:
        self._scene = scene
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._scene)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        """Restore the scene from before the last change.

        Returns:
            True if something was undone, False if history is empty

        Raises:
            ReentrantDispatchError: If called from a subscriber
        """
        return self._replay(self.history.undo)

    def redo(self) -> bool:
        """Re-apply the last undone change.

        Returns:
            True if something was redone, False if there is nothing to redo

        Raises:
            ReentrantDispatchError: If called from a subscriber
        """
        return self._replay(self.history.redo)

    def _replay(self, step: Callable[[], bool]) -> bool:
        if self.history.is_busy:
            raise ReentrantDispatchError(
                f"undo/redo called while engine is {self.history.state.value}"
            )

        self._deferred_count = 0
        try:
            done = step()
            self._drain()
        except Exception:
            self._deferred.clear()
            raise
        return done

    def can_undo(self) -> bool:
        """Check if there is a change to undo."""
        return self.history.can_undo()

    def can_redo(self) -> bool:
        """Check if there is a change to redo."""
        return self.history.can_redo()

    def clear_history(self) -> None:
        """Forget all undo/redo history. The current scene is kept."""
        self.history.clear()

    # ------------------------------------------------------------------
    # Convenience actions
    # ------------------------------------------------------------------

    def _created(self, action: Action, entity_id: str) -> str | None:
        return entity_id if self.dispatch(action) else None

    def add_object(self, obj: dict[str, Any] | None = None, **fields: Any) -> str | None:
        """Add an object and return its id.

        Args:
            obj: Partial object description
            **fields: Additional object fields

        Returns:
            ID of the object (assigned if not given), or None if the object
            was not added right away (rejected, or deferred from a subscriber)
        """
        data = {**(obj or {}), **fields}
        data["id"] = data.get("id") or new_id()
        return self._created(AddObject(object=data), data["id"])

    def update_object(self, object_id: str, changes: dict[str, Any] | None = None, **fields: Any) -> None:
        """Shallow-merge changes onto an object."""
        self.dispatch(UpdateObject(id=object_id, changes={**(changes or {}), **fields}))

    def remove_object(self, object_id: str) -> None:
        """Remove an object (and prune it from the selection)."""
        self.dispatch(RemoveObject(id=object_id))

    def duplicate_object(self, object_id: str) -> str | None:
        """Duplicate an object and return the id of the copy (None if not copied)."""
        copy_id = new_id()
        return self._created(DuplicateObject(id=object_id, new_id=copy_id), copy_id)

    def move_object(self, object_id: str, parent_id: str | None = None, index: int | None = None) -> None:
        """Reparent an object. ``parent_id=None`` moves it to the root."""
        self.dispatch(MoveObject(id=object_id, parent_id=parent_id, index=index))

    def reorder_children(self, parent_id: str, child_ids: Iterable[str]) -> None:
        """Set the order of a parent's children."""
        self.dispatch(ReorderChildren(parent_id=parent_id, child_ids=tuple(child_ids)))

    def select_objects(self, ids: Iterable[str], mode: str = "set") -> None:
        """Change the selection (mode: set, add or toggle)."""
        self.dispatch(Select(ids=tuple(ids), mode=mode))

    def clear_selection(self) -> None:
        """Deselect everything."""
        self.dispatch(ClearSelection())

    def add_material(self, material: dict[str, Any] | None = None, **fields: Any) -> str | None:
        """Add a material definition and return its id (None if not added)."""
        data = {**(material or {}), **fields}
        data["id"] = data.get("id") or new_id()
        return self._created(AddMaterial(material=data), data["id"])

    def update_material(self, material_id: str, changes: dict[str, Any] | None = None, **fields: Any) -> None:
        """Shallow-merge changes onto a material definition."""
        self.dispatch(UpdateMaterial(id=material_id, changes={**(changes or {}), **fields}))

    def apply_material(self, object_ids: Iterable[str], material_id: str) -> None:
        """Reference a scene material from each listed object."""
        self.dispatch(ApplyMaterial(object_ids=tuple(object_ids), material_id=material_id))

    def update_camera(self, changes: dict[str, Any] | None = None, **fields: Any) -> None:
        """Shallow-merge changes onto the camera."""
        self.dispatch(UpdateCamera(changes={**(changes or {}), **fields}))

    def update_environment(self, changes: dict[str, Any] | None = None, **fields: Any) -> None:
        """Shallow-merge changes onto the environment."""
        self.dispatch(UpdateEnvironment(changes={**(changes or {}), **fields}))

    def add_light(self, light: dict[str, Any] | None = None, **fields: Any) -> str | None:
        """Add a light and return its id (None if not added)."""
        data = {**(light or {}), **fields}
        data["id"] = data.get("id") or new_id()
        return self._created(AddLight(light=data), data["id"])

    def update_light(self, light_id: str, changes: dict[str, Any] | None = None, **fields: Any) -> None:
        """Shallow-merge changes onto a light."""
        self.dispatch(UpdateLight(id=light_id, changes={**(changes or {}), **fields}))

    def remove_light(self, light_id: str) -> None:
        """Remove a light."""
        self.dispatch(RemoveLight(id=light_id))

    def reset_scene(self) -> None:
        """Replace the document with a fresh default scene."""
        self.dispatch(ResetScene())

    def batch(self, actions: Iterable[Action | dict[str, Any]]) -> bool:
        """Apply several actions as a single undoable change."""
        return self.dispatch(Batch(actions=tuple(actions)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_object(self, object_id: str) -> SceneObject | None:
        """Get an object by ID."""
        return self._scene.get_object(object_id)

    def get_selected_objects(self) -> list[SceneObject]:
        """Selected objects, in selection order."""
        selected = (self._scene.get_object(object_id) for object_id in self._scene.selection)
        return [obj for obj in selected if obj is not None]

    def find_objects(self, predicate: Callable[[SceneObject], bool]) -> list[SceneObject]:
        """Objects matching a predicate, in document order."""
        return [obj for obj in self._scene.objects if predicate(obj)]

    def get_children(self, parent_id: str) -> list[SceneObject]:
        """Child objects of a parent, in order."""
        return tree.get_children(self._scene, parent_id)

    def get_parent(self, child_id: str) -> SceneObject | None:
        """Parent object of a child."""
        return tree.get_parent(self._scene, child_id)

    def get_world_matrix(self, object_id: str) -> NDArray[np.float64]:
        """World transformation matrix of an object."""
        return tree.world_matrix(self._scene, object_id)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_scene(self) -> Scene:
        """Return an independent copy of the current scene."""
        return self._scene.snapshot()

    def import_scene(self, scene: Scene | dict[str, Any]) -> None:
        """Replace the current scene (undoable).

        Raises:
            pydantic.ValidationError: If a dict does not describe a valid scene
        """
        if isinstance(scene, dict):
            scene = Scene.model_validate(scene)
        self.dispatch(LoadScene(scene=scene))
