"""Reconciliation of a scene against an externally owned render graph.

A renderer keeps its own retained objects (meshes, GPU materials, lights)
and a mapping from scene ids to those handles. Each sync compares the new
scene with that mapping and issues the minimal set of calls on the
collaborator: ``create`` for new ids, ``dispose`` for vanished ids and
``update`` for everything still present.

The algorithm knows nothing about any particular backend; it only needs an
EntityAdapter per collection.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Sequence, TypeVar

if TYPE_CHECKING:
    from ..engine import SceneEngine
    from ..scene.scene import Camera, Environment, Scene

logger = logging.getLogger(__name__)

H = TypeVar("H")


class EntityAdapter(ABC, Generic[H]):
    """Collaborator hooks for one kind of entity (material, object, light).

    Implementations should be cheap to call repeatedly with an unchanged
    descriptor: ``update`` is called on every sync for every live entity.
    """

    @abstractmethod
    def create(self, descriptor: Any) -> H | None:
        """Build the external counterpart of a descriptor.

        Returning None means the entity could not be created; it is not
        tracked and creation is attempted again on the next sync.
        """
        pass

    @abstractmethod
    def update(self, handle: H, descriptor: Any) -> None:
        """Bring an existing handle in line with its descriptor."""
        pass

    @abstractmethod
    def dispose(self, handle: H) -> None:
        """Release an external object that is no longer in the scene."""
        pass

    def key(self, descriptor: Any) -> str | None:
        """Identity of a descriptor. Defaults to its ``id`` attribute."""
        return getattr(descriptor, "id", None)


@dataclass
class CollectionDiff:
    """IDs touched while reconciling one collection."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True if nothing was created or removed."""
        return not self.created and not self.removed


@dataclass
class SyncResult:
    """Outcome of one full scene sync."""

    materials: CollectionDiff
    objects: CollectionDiff
    lights: CollectionDiff

    @property
    def total_calls(self) -> int:
        """Number of create/update/dispose calls issued."""
        return sum(
            len(d.created) + len(d.updated) + len(d.removed)
            for d in (self.materials, self.objects, self.lights)
        )


def reconcile_collection(
    mapping: dict[str, H],
    items: Sequence[Any],
    adapter: EntityAdapter[H],
) -> CollectionDiff:
    """Reconcile one collection against its retained handles.

    Disposes handles whose ids are gone, then walks ``items`` in order,
    creating handles for new ids and updating the rest. ``mapping`` is
    modified in place.

    Args:
        mapping: Retained id -> handle mapping
        items: Descriptors of the new collection
        adapter: Collaborator hooks

    Returns:
        CollectionDiff listing the affected ids
    """
    diff = CollectionDiff()

    current: dict[str, Any] = {}
    for item in items:
        item_key = adapter.key(item)
        if item_key is None:
            logger.warning(f"Skipping {type(item).__name__} without an id")
            continue
        if item_key in current:
            logger.warning(f"Skipping duplicate id '{item_key}'")
            continue
        current[item_key] = item

    for stale_key in [k for k in mapping if k not in current]:
        adapter.dispose(mapping.pop(stale_key))
        diff.removed.append(stale_key)

    for item_key, item in current.items():
        if item_key in mapping:
            adapter.update(mapping[item_key], item)
            diff.updated.append(item_key)
            continue

        handle = adapter.create(item)
        if handle is None:
            logger.debug(f"Collaborator could not create '{item_key}', will retry")
            continue
        mapping[item_key] = handle
        diff.created.append(item_key)

    return diff


class SceneReconciler:
    """Keeps an external render graph in sync with successive scenes.

    Collections are reconciled in dependency order: materials first (objects
    refer to them), then objects, then lights, then camera and environment.

    Use ``sync`` directly as an engine subscriber for immediate updates, or
    call ``tick`` once per frame to pull the latest scene only when it has
    changed.
    """

    def __init__(
        self,
        materials: EntityAdapter,
        objects: EntityAdapter,
        lights: EntityAdapter,
        camera: Callable[[Camera], None] | None = None,
        environment: Callable[[Environment], None] | None = None,
    ):
        """Initialize reconciler.

        Args:
            materials: Hooks for scene materials
            objects: Hooks for scene objects
            lights: Hooks for lights
            camera: Called with the camera on every sync
            environment: Called with the environment on every sync
        """
        self.adapters: dict[str, EntityAdapter] = {
            "materials": materials,
            "objects": objects,
            "lights": lights,
        }
        self._camera = camera
        self._environment = environment

        self.mappings: dict[str, dict[str, Any]] = {kind: {} for kind in self.adapters}
        self._last_scene: Scene | None = None

    def sync(self, scene: Scene) -> SyncResult:
        """Reconcile the retained graph with a scene.

        Args:
            scene: Scene to project

        Returns:
            SyncResult with per-collection diffs
        """
        result = SyncResult(
            materials=reconcile_collection(
                self.mappings["materials"], scene.materials, self.adapters["materials"]
            ),
            objects=reconcile_collection(
                self.mappings["objects"], scene.objects, self.adapters["objects"]
            ),
            lights=reconcile_collection(
                self.mappings["lights"], scene.lights, self.adapters["lights"]
            ),
        )
        if self._camera is not None:
            self._camera(scene.camera)
        if self._environment is not None:
            self._environment(scene.environment)

        self._last_scene = scene
        logger.debug(
            f"Synced scene {scene.id}: "
            f"{len(result.materials.created)}/{len(result.objects.created)}/{len(result.lights.created)} created, "
            f"{len(result.materials.removed)}/{len(result.objects.removed)}/{len(result.lights.removed)} removed "
            f"(materials/objects/lights)"
        )
        return result

    def tick(self, engine: SceneEngine) -> SyncResult | None:
        """Sync with the engine's latest scene if it changed since the last sync.

        Args:
            engine: Engine to pull the scene from

        Returns:
            SyncResult, or None if the scene was already synced
        """
        scene = engine.get_scene()
        if scene is self._last_scene:
            return None
        return self.sync(scene)

    def handle(self, kind: str, entity_id: str) -> Any | None:
        """Look up the retained handle of an entity.

        Args:
            kind: "materials", "objects" or "lights"
            entity_id: Scene id of the entity

        Returns:
            The handle, or None if not materialized
        """
        return self.mappings[kind].get(entity_id)

    def dispose_all(self) -> None:
        """Dispose every retained handle, objects first."""
        for kind in ("objects", "lights", "materials"):
            adapter = self.adapters[kind]
            mapping = self.mappings[kind]
            for handle in mapping.values():
                adapter.dispose(handle)
            mapping.clear()
        self._last_scene = None
