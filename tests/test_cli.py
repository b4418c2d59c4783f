"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from scenedsl.cli import main
from scenedsl.scene.scene import Scene, SceneObject, create_default_scene


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def scene_file(tmp_path):
    """A scene with a small hierarchy saved to disk."""
    scene = create_default_scene(
        name="Bench",
        objects=(
            SceneObject(id="g", name="Group", type="group", children=("m",)),
            SceneObject(id="m", name="Mesh", parent="g"),
        ),
    )
    path = tmp_path / "bench.scene.json"
    scene.save(path)
    return path


class TestCommands:
    """Test top-level commands."""

    def test_actions(self, runner):
        """Test listing action types."""
        result = runner.invoke(main, ["actions"])
        assert result.exit_code == 0
        assert "MOVE_OBJECT" in result.output

    def test_init_config(self, runner, tmp_path):
        """Test writing a default config file."""
        path = tmp_path / "engine.json"
        result = runner.invoke(main, ["init-config", "-o", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["history"]["max_entries"] == 50


class TestSceneCommands:
    """Test the scene command group."""

    def test_create(self, runner, tmp_path):
        """Test creating a scene adds the suffix when missing."""
        result = runner.invoke(main, ["scene", "create", str(tmp_path / "new"), "--name", "Fresh"])

        assert result.exit_code == 0
        scene = Scene.load(tmp_path / "new.scene.json")
        assert scene.name == "Fresh"
        assert scene.get_material("default") is not None

    def test_info(self, runner, scene_file):
        """Test scene info output."""
        result = runner.invoke(main, ["scene", "info", str(scene_file)])

        assert result.exit_code == 0
        assert "Bench" in result.output
        assert "Content hash" in result.output

    def test_tree(self, runner, scene_file):
        """Test hierarchy output."""
        result = runner.invoke(main, ["scene", "tree", str(scene_file)])

        assert result.exit_code == 0
        assert "Group" in result.output
        assert "Mesh" in result.output

    def test_apply(self, runner, scene_file, tmp_path):
        """Test replaying actions from a file."""
        actions_file = tmp_path / "actions.json"
        actions_file.write_text(json.dumps([
            {"type": "ADD_OBJECT", "object": {"id": "n", "name": "New"}},
            {"type": "MOVE_OBJECT", "id": "n", "parent_id": "g"},
            {"type": "REMOVE_OBJECT", "id": "ghost"},
        ]))
        output = tmp_path / "out.scene.json"

        result = runner.invoke(main, [
            "scene", "apply", str(scene_file), str(actions_file), "-o", str(output),
        ])

        assert result.exit_code == 0
        assert "Applied 2 action(s)" in result.output
        scene = Scene.load(output)
        assert scene.get_object("g").children == ("m", "n")

    def test_apply_with_config(self, runner, scene_file, tmp_path):
        """Test the removal policy comes from the config file."""
        config_file = tmp_path / "engine.json"
        config_file.write_text(json.dumps({"reducer": {"removal_policy": "cascade"}}))
        actions_file = tmp_path / "actions.json"
        actions_file.write_text(json.dumps({"type": "REMOVE_OBJECT", "id": "g"}))

        result = runner.invoke(main, [
            "scene", "apply", str(scene_file), str(actions_file), "-c", str(config_file),
        ])

        assert result.exit_code == 0
        assert Scene.load(scene_file).objects == ()

    def test_check_valid(self, runner, scene_file):
        """Test a consistent scene passes the check."""
        result = runner.invoke(main, ["scene", "check", str(scene_file)])
        assert result.exit_code == 0
        assert "Hierarchy OK" in result.output

    def test_check_invalid(self, runner, tmp_path):
        """Test a broken hierarchy fails the check."""
        path = tmp_path / "broken.scene.json"
        Scene(objects=(SceneObject(id="a", parent="ghost"),)).save(path)

        result = runner.invoke(main, ["scene", "check", str(path)])

        assert result.exit_code != 0
        assert "missing parent" in result.output

    def test_invalid_scene_file(self, runner, tmp_path):
        """Test a file that is not a scene is reported."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"objects": "nope"}))

        result = runner.invoke(main, ["scene", "info", str(path)])

        assert result.exit_code != 0
        assert "Invalid scene file" in result.output

    def test_diff(self, runner, scene_file, tmp_path):
        """Test the reconciliation diff between two scenes."""
        old = Scene.load(scene_file)
        new = old.model_copy(update={
            "objects": (*old.objects[1:], SceneObject(id="extra")),
        })
        new_file = tmp_path / "new.scene.json"
        new.save(new_file)

        result = runner.invoke(main, ["scene", "diff", str(scene_file), str(new_file)])

        assert result.exit_code == 0
        assert "extra" in result.output
        assert "Total calls: 6" in result.output
