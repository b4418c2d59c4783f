"""Scene data structures.

This module provides the declarative data model of an editable 3D scene:
objects arranged in a parent/child hierarchy, the materials they reference,
lights, the camera and environment settings, and the current selection.

Every model is frozen and every collection is a tuple, so a scene value can
be shared freely between versions. Changes are made by the reducer, which
builds new values instead of mutating old ones.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from .transform import Transform3D, Vector3

SCENE_FORMAT_VERSION = "2.1"


def new_id() -> str:
    """Generate a unique identifier for a scene entity."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current local time as an ISO-8601 string."""
    return datetime.now().isoformat()


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------

GeometryType = Literal["box", "sphere", "plane", "cylinder", "cone", "torus", "model"]


class GeometryRef(BaseModel):
    """Reference to a shared geometry by ID."""

    id: str

    model_config = {"frozen": True, "extra": "forbid"}


class GeometryInline(BaseModel):
    """Inline geometry descriptor.

    The engine never builds geometry itself; the descriptor is handed to the
    rendering collaborator unchanged.
    """

    type: GeometryType
    size: float | Vector3 | None = None
    segments: int | tuple[int, int] | None = None
    radius: float | None = None
    height: float | None = None
    radial_segments: int | None = None
    height_segments: int | None = None
    url: str | None = Field(default=None, description="Source URL for 'model' geometry")

    model_config = {"frozen": True}


Geometry = GeometryRef | GeometryInline


# -----------------------------------------------------------------------------
# Materials
# -----------------------------------------------------------------------------

MaterialType = Literal["standard", "basic", "wireframe", "phong", "lambert"]


class MaterialRef(BaseModel):
    """Reference to an entry of ``Scene.materials``."""

    id: str

    model_config = {"frozen": True, "extra": "forbid"}


class MaterialInline(BaseModel):
    """Full material descriptor.

    Entries of ``Scene.materials`` are always inline descriptors with an id.
    Objects may also carry an anonymous inline material of their own.
    """

    id: str | None = None
    name: str | None = None
    type: MaterialType = "standard"
    color: str = "#ffffff"
    metalness: float = Field(default=0.0, ge=0.0, le=1.0)
    roughness: float = Field(default=0.5, ge=0.0, le=1.0)
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    transparent: bool | None = None
    wireframe: bool | None = None
    emissive: str | None = None
    emissive_intensity: float | None = None
    map: str | None = Field(default=None, description="Texture URL")
    normal_map: str | None = None
    roughness_map: str | None = None
    metalness_map: str | None = None

    model_config = {"frozen": True}


Material = MaterialRef | MaterialInline


# -----------------------------------------------------------------------------
# Objects, lights, camera, environment
# -----------------------------------------------------------------------------

SceneObjectType = Literal["mesh", "group", "light", "helper"]


class SceneObject(BaseModel):
    """A single node of the scene hierarchy.

    If ``parent`` is set, the parent's ``children`` contains this object's id
    and vice versa. The relation is acyclic.
    """

    id: str = Field(description="Unique identifier for this object")
    name: str = Field(default="", description="Display name")
    type: SceneObjectType = "mesh"
    geometry: Geometry | None = None
    material: Material | None = None
    transform: Transform3D = Field(default_factory=Transform3D)
    visible: bool = True
    cast_shadow: bool = False
    receive_shadow: bool = False
    parent: str | None = Field(default=None, description="ID of the parent object")
    children: tuple[str, ...] | None = Field(
        default=None,
        description="Ordered IDs of child objects"
    )
    user_data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


LightType = Literal["ambient", "directional", "point", "spot", "hemisphere"]


class Light(BaseModel):
    """A light source. Attributes are merged shallowly on update."""

    id: str
    name: str = ""
    type: LightType = "directional"
    color: str = "#ffffff"
    intensity: float = Field(default=1.0, ge=0.0)
    position: Vector3 | None = None
    target: Vector3 | None = None
    distance: float | None = None
    decay: float | None = None
    angle: float | None = None
    penumbra: float | None = None
    ground_color: str | None = Field(default=None, description="Hemisphere lights only")
    cast_shadow: bool = False

    model_config = {"frozen": True}


class Camera(BaseModel):
    """Scene camera."""

    type: Literal["perspective", "orthographic"] = "perspective"
    position: Vector3 = (5.0, 5.0, 5.0)
    target: Vector3 = (0.0, 0.0, 0.0)
    fov: float | None = Field(default=75.0, description="Perspective field of view in degrees")
    aspect: float | None = 1.0
    near: float | None = 0.1
    far: float | None = 1000.0

    # Orthographic frustum
    left: float | None = None
    right: float | None = None
    top: float | None = None
    bottom: float | None = None

    model_config = {"frozen": True}


class Background(BaseModel):
    """Scene background."""

    type: Literal["color", "texture", "hdri"] = "color"
    value: str | None = None
    color: str | None = None

    model_config = {"frozen": True}


class Fog(BaseModel):
    """Distance fog."""

    type: Literal["linear", "exponential"] = "linear"
    color: str = "#ffffff"
    near: float | None = None
    far: float | None = None
    density: float | None = None

    model_config = {"frozen": True}


class ShadowSettings(BaseModel):
    """Renderer shadow settings."""

    enabled: bool = True
    type: Literal["basic", "pcf", "pcfsoft"] = "pcf"
    map_size: int = Field(default=1024, ge=1)

    model_config = {"frozen": True}


class Environment(BaseModel):
    """Background, fog and shadow settings."""

    background: Background | None = None
    fog: Fog | None = None
    shadows: ShadowSettings | None = None

    model_config = {"frozen": True}


class SceneMetadata(BaseModel):
    """Creation/modification stamps and format version."""

    created: str = Field(default_factory=now_iso, description="ISO timestamp of creation")
    modified: str = Field(default_factory=now_iso, description="ISO timestamp of last change")
    version: str = SCENE_FORMAT_VERSION

    model_config = {"frozen": True}


# -----------------------------------------------------------------------------
# Scene
# -----------------------------------------------------------------------------


class Scene(BaseModel):
    """The complete declarative document describing all editable entities.

    A Scene is never modified in place. The engine replaces it wholesale on
    every successful dispatch.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(default="Untitled Scene", description="Scene name")

    objects: tuple[SceneObject, ...] = ()
    materials: tuple[MaterialInline, ...] = ()
    lights: tuple[Light, ...] = ()
    camera: Camera = Field(default_factory=Camera)
    environment: Environment = Field(default_factory=Environment)

    selection: tuple[str, ...] = Field(
        default=(),
        description="IDs of selected objects, in selection order"
    )
    metadata: SceneMetadata = Field(default_factory=SceneMetadata)

    model_config = {"frozen": True}

    def get_object(self, object_id: str) -> SceneObject | None:
        """Get an object by ID.

        Args:
            object_id: ID of the object to find

        Returns:
            SceneObject if found, None otherwise
        """
        for obj in self.objects:
            if obj.id == object_id:
                return obj
        return None

    def has_object(self, object_id: str) -> bool:
        """Check whether an object with this ID exists."""
        return self.get_object(object_id) is not None

    def get_material(self, material_id: str) -> MaterialInline | None:
        """Get a material definition by ID."""
        for material in self.materials:
            if material.id == material_id:
                return material
        return None

    def get_light(self, light_id: str) -> Light | None:
        """Get a light by ID."""
        for light in self.lights:
            if light.id == light_id:
                return light
        return None

    def snapshot(self) -> Scene:
        """Return a fully independent copy of this scene.

        The copy is produced by a round trip through the schema
        (``model_dump`` then ``model_validate``), so it shares no objects
        with the source, including ``user_data`` dicts.
        """
        return type(self).model_validate(self.model_dump(mode="python"))

    def content_hash(self) -> str:
        """Compute a content hash of the scene.

        Uses SHA-256 of the canonical JSON form, so two scenes hash equal
        exactly when their exported documents are equal.
        """
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        hasher = hashlib.sha256()
        hasher.update(payload.encode("utf-8"))
        return hasher.hexdigest()[:16]  # Truncate for readability

    @property
    def object_ids(self) -> list[str]:
        """IDs of all objects, in document order."""
        return [obj.id for obj in self.objects]

    def save(self, path: str | Path) -> None:
        """Save scene to a JSON file.

        Args:
            path: Output file path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def load(cls, path: str | Path) -> Scene:
        """Load scene from a JSON file.

        Args:
            path: Input file path

        Returns:
            Loaded Scene
        """
        path = Path(path)
        with open(path) as f:
            data = json.load(f)

        return cls.model_validate(data)


def create_default_scene(timestamp: str | None = None, **overrides: Any) -> Scene:
    """Create the initial scene of a new document.

    Contains one default material, an ambient and a directional light, a
    perspective camera looking at the origin and a plain colour background.

    Args:
        timestamp: Creation/modification stamp (defaults to now)
        **overrides: Scene fields replacing the defaults

    Returns:
        New Scene with a fresh ID
    """
    stamp = timestamp or now_iso()
    fields: dict[str, Any] = {
        "id": new_id(),
        "name": "Untitled Scene",
        "objects": (),
        "materials": (
            MaterialInline(
                id="default",
                name="Default Material",
                type="standard",
                color="#ffffff",
                metalness=0.0,
                roughness=0.5,
                opacity=1.0,
            ),
        ),
        "lights": (
            Light(
                id="ambient",
                name="Ambient Light",
                type="ambient",
                color="#ffffff",
                intensity=0.4,
            ),
            Light(
                id="directional",
                name="Sun Light",
                type="directional",
                color="#ffffff",
                intensity=0.8,
                position=(5.0, 5.0, 5.0),
                target=(0.0, 0.0, 0.0),
            ),
        ),
        "camera": Camera(),
        "environment": Environment(
            background=Background(type="color", color="#f0f0f0"),
        ),
        "selection": (),
        "metadata": SceneMetadata(created=stamp, modified=stamp),
    }
    fields.update(overrides)
    return Scene.model_validate(fields)
