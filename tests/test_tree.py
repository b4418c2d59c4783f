"""Tests for hierarchy queries and integrity checks."""

import numpy as np
import pytest

from scenedsl.scene import tree
from scenedsl.scene.scene import Scene, SceneObject
from scenedsl.scene.transform import Transform3D


@pytest.fixture
def scene() -> Scene:
    """root -> (left -> leaf, right), plus a lone object."""
    return Scene(objects=(
        SceneObject(id="root", children=("left", "right"),
                    transform=Transform3D(position=(1.0, 0.0, 0.0))),
        SceneObject(id="left", parent="root", children=("leaf",),
                    transform=Transform3D(position=(0.0, 2.0, 0.0))),
        SceneObject(id="right", parent="root"),
        SceneObject(id="leaf", parent="left",
                    transform=Transform3D(position=(0.0, 0.0, 3.0))),
        SceneObject(id="lone"),
    ))


class TestQueries:
    """Test hierarchy queries."""

    def test_ancestors(self, scene):
        """Test ancestors are listed nearest first."""
        assert tree.ancestors(scene, "leaf") == ["left", "root"]
        assert tree.ancestors(scene, "root") == []
        assert tree.ancestors(scene, "missing") == []

    def test_is_descendant(self, scene):
        """Test subtree membership."""
        assert tree.is_descendant(scene, "leaf", "root")
        assert tree.is_descendant(scene, "leaf", "left")
        assert not tree.is_descendant(scene, "root", "leaf")
        assert not tree.is_descendant(scene, "right", "left")
        assert not tree.is_descendant(scene, "root", "root")

    def test_descendants(self, scene):
        """Test descendants are depth first in children order."""
        assert tree.descendants(scene, "root") == ["left", "leaf", "right"]
        assert tree.descendants(scene, "lone") == []

    def test_children_and_parent(self, scene):
        """Test child and parent lookups."""
        assert [c.id for c in tree.get_children(scene, "root")] == ["left", "right"]
        assert tree.get_children(scene, "lone") == []
        assert tree.get_parent(scene, "leaf").id == "left"
        assert tree.get_parent(scene, "root") is None

    def test_roots(self, scene):
        """Test roots are objects without a parent."""
        assert [obj.id for obj in tree.roots(scene)] == ["root", "lone"]

    def test_cyclic_data_terminates(self):
        """Test queries stop on corrupted cyclic data."""
        scene = Scene(objects=(
            SceneObject(id="a", parent="b", children=("b",)),
            SceneObject(id="b", parent="a", children=("a",)),
        ))

        assert tree.ancestors(scene, "a") == ["b"]
        assert tree.descendants(scene, "a") == ["b"]
        assert tree.is_descendant(scene, "a", "b")


class TestWorldMatrix:
    """Test world matrix composition."""

    def test_translation_chain(self, scene):
        """Test translations accumulate down the hierarchy."""
        matrix = tree.world_matrix(scene, "leaf")
        np.testing.assert_array_almost_equal(matrix[:3, 3], [1.0, 2.0, 3.0])

    def test_parent_rotation(self):
        """Test a child's offset is rotated by its parent."""
        scene = Scene(objects=(
            SceneObject(id="p", children=("c",),
                        transform=Transform3D(rotation=(0.0, 0.0, np.pi / 2))),
            SceneObject(id="c", parent="p",
                        transform=Transform3D(position=(1.0, 0.0, 0.0))),
        ))

        matrix = tree.world_matrix(scene, "c")
        np.testing.assert_array_almost_equal(matrix[:3, 3], [0.0, 1.0, 0.0])

    def test_parent_scale(self):
        """Test a child's offset is scaled by its parent."""
        scene = Scene(objects=(
            SceneObject(id="p", children=("c",),
                        transform=Transform3D(scale=(2.0, 2.0, 2.0))),
            SceneObject(id="c", parent="p",
                        transform=Transform3D(position=(1.0, 1.0, 0.0))),
        ))

        matrix = tree.world_matrix(scene, "c")
        np.testing.assert_array_almost_equal(matrix[:3, 3], [2.0, 2.0, 0.0])

    def test_unknown_object(self, scene):
        """Test unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            tree.world_matrix(scene, "missing")


class TestValidateHierarchy:
    """Test validate_hierarchy."""

    def test_valid(self, scene):
        """Test a consistent scene passes."""
        is_valid, errors = tree.validate_hierarchy(scene)
        assert is_valid
        assert errors == []

    def test_missing_parent(self):
        """Test dangling parent references are reported."""
        scene = Scene(objects=(SceneObject(id="a", parent="ghost"),))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert any("missing parent" in e for e in errors)

    def test_asymmetric_link(self):
        """Test a parent pointer without a matching child entry is reported."""
        scene = Scene(objects=(
            SceneObject(id="p"),
            SceneObject(id="c", parent="p"),
        ))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert any("not among its children" in e for e in errors)

    def test_missing_child(self):
        """Test dangling child references are reported."""
        scene = Scene(objects=(SceneObject(id="p", children=("ghost",)),))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert any("missing child" in e for e in errors)

    def test_cycle(self):
        """Test parent cycles are reported."""
        scene = Scene(objects=(
            SceneObject(id="a", parent="b", children=("b",)),
            SceneObject(id="b", parent="a", children=("a",)),
        ))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert any("cycle" in e for e in errors)

    def test_duplicate_ids(self):
        """Test duplicate ids are reported."""
        scene = Scene(objects=(SceneObject(id="a"), SceneObject(id="a")))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert any("Duplicate" in e for e in errors)

    def test_selection_missing_object(self):
        """Test selections of unknown ids are reported."""
        scene = Scene(objects=(SceneObject(id="a"),), selection=("a", "ghost"))
        is_valid, errors = tree.validate_hierarchy(scene)

        assert not is_valid
        assert errors == ["Selection references missing object 'ghost'"]
