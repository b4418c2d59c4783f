"""Local transforms of scene objects.

A Transform3D is the position/rotation/scale triple every scene object
carries. It is a frozen value; use ``translated`` or ``model_copy`` to derive
a new one. ``to_matrix`` gives the 4x4 local matrix that hierarchy code
multiplies down the parent chain.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray
from pydantic import BaseModel, Field
from scipy.spatial.transform import Rotation

Vector3 = tuple[float, float, float]

EULER_ORDER = "xyz"


class Transform3D(BaseModel):
    """Position, rotation and scale of an object relative to its parent.

    Attributes:
        position: Offset from the parent origin in scene units
        rotation: Euler angles in radians, applied in XYZ order
        scale: Scale factor along each local axis
    """

    position: Vector3 = Field(
        default=(0.0, 0.0, 0.0),
        description="Offset from the parent origin"
    )
    rotation: Vector3 = Field(
        default=(0.0, 0.0, 0.0),
        description="Euler angles in radians (XYZ order)"
    )
    scale: Vector3 = Field(
        default=(1.0, 1.0, 1.0),
        description="Scale per local axis"
    )

    model_config = {"frozen": True}

    def rotation_matrix(self) -> NDArray[np.float64]:
        """3x3 rotation part of the transform."""
        return Rotation.from_euler(EULER_ORDER, self.rotation).as_matrix()

    def to_matrix(self) -> NDArray[np.float64]:
        """Build the 4x4 local matrix.

        Vertices are scaled first, then rotated, then moved, so the matrix is
        ``translate @ rotate @ scale``.

        Returns:
            4x4 homogeneous matrix
        """
        matrix = np.eye(4, dtype=np.float64)
        # Scaling the columns of R is the same as R @ diag(scale)
        matrix[:3, :3] = self.rotation_matrix() * np.asarray(self.scale, dtype=np.float64)
        matrix[:3, 3] = self.position
        return matrix

    def apply_to_points(self, points: ArrayLike) -> NDArray[np.float64]:
        """Map points from local space into parent space.

        Args:
            points: Nx3 array (or a single 3-vector)

        Returns:
            Nx3 array of mapped points
        """
        return apply_matrix(self.to_matrix(), points)

    def translated(self, offset: Vector3) -> Transform3D:
        """Return a copy moved by ``offset``."""
        position = tuple(float(p + o) for p, o in zip(self.position, offset))
        return self.model_copy(update={"position": position})

    @property
    def is_identity(self) -> bool:
        """True if the transform leaves every point where it is."""
        return self == Transform3D()

    def __repr__(self) -> str:
        return f"Transform3D(position={self.position}, rotation={self.rotation}, scale={self.scale})"


def apply_matrix(matrix: NDArray[np.float64], points: ArrayLike) -> NDArray[np.float64]:
    """Multiply points by a 4x4 homogeneous matrix.

    Args:
        matrix: 4x4 matrix
        points: Nx3 array (or a single 3-vector)

    Returns:
        Nx3 array of mapped points
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return pts @ matrix[:3, :3].T + matrix[:3, 3]
