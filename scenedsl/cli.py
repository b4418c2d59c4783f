"""Command-line interface for SceneDSL.

Usage:
    scenedsl actions
    scenedsl init-config [options]
    scenedsl scene create scene.json [options]
    scenedsl scene info scene.json
    scenedsl scene apply scene.json actions.json [options]
    scenedsl scene diff old.json new.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .core.config import EngineConfig
from .engine import SceneEngine
from .render.recorder import recording_reconciler
from .scene import tree as scene_tree
from .scene.actions import list_actions
from .scene.scene import MaterialRef, Scene, create_default_scene

console = Console()

SCENE_SUFFIX = ".scene.json"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False)],
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """SceneDSL - Declarative scene engine for 3D editors."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


def _load_scene(path: str) -> Scene:
    try:
        return Scene.load(path)
    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]Invalid scene file {path}: {escape(str(e))}[/red]")
        raise click.Abort()


def _fmt_vec(vec: tuple[float, float, float] | None, digits: int = 2) -> str:
    if vec is None:
        return "-"
    return "(" + ", ".join(f"{v:.{digits}f}" for v in vec) + ")"


def _material_label(material) -> str:
    if material is None:
        return "-"
    if isinstance(material, MaterialRef):
        return f"-> {material.id}"
    return f"inline {material.color}"


@main.command()
def actions() -> None:
    """List the action types the reducer understands."""
    console.print("\n[bold]Available Actions[/bold]\n")

    table = Table()
    table.add_column("Type", style="cyan")
    table.add_column("Description", style="white")

    for action in list_actions():
        table.add_row(action["type"], action["description"])

    console.print(table)


@main.command("init-config")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="scenedsl_config.json",
    help="Output path for config file",
)
def init_config(output: str) -> None:
    """Generate a default engine configuration file."""
    cfg = EngineConfig.default()
    cfg.to_file(output)
    console.print(f"[green]Created config file: {output}[/green]")
    console.print(f"History size: {cfg.history.max_entries}")
    console.print(f"Removal policy: {cfg.reducer.removal_policy}")


@main.group()
def scene() -> None:
    """Scene document commands."""
    pass


@scene.command("create")
@click.argument("output", type=click.Path())
@click.option("--name", "-n", default="Untitled Scene", help="Scene name")
def scene_create(output: str, name: str) -> None:
    """Create a new default scene file.

    OUTPUT: Path for the new scene file (.scene.json)
    """
    scene_obj = create_default_scene(name=name)

    output_path = Path(output)
    if not output_path.suffix:
        output_path = output_path.with_name(output_path.name + SCENE_SUFFIX)

    scene_obj.save(output_path)
    console.print(f"[green]Created scene: {output_path}[/green]")
    console.print(f"Name: {name}")
    console.print(f"Materials: {len(scene_obj.materials)}, lights: {len(scene_obj.lights)}")


@scene.command("info")
@click.argument("scene_file", type=click.Path(exists=True))
def scene_info(scene_file: str) -> None:
    """Show information about a scene.

    SCENE_FILE: Path to the scene file
    """
    scene_obj = _load_scene(scene_file)

    console.print(f"\n[bold]Scene: {scene_obj.name}[/bold]")
    console.print(f"  ID: {scene_obj.id}")
    console.print(f"  Modified: {scene_obj.metadata.modified}")
    console.print(f"  Content hash: {scene_obj.content_hash()}")

    cam = scene_obj.camera
    console.print("\n[cyan]Camera:[/cyan]")
    console.print(f"  {cam.type} at {_fmt_vec(cam.position)} looking at {_fmt_vec(cam.target)}")

    if scene_obj.objects:
        console.print(f"\n[cyan]Objects ({len(scene_obj.objects)}):[/cyan]")
        table = Table()
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Position", style="green")
        table.add_column("Material", style="magenta")
        table.add_column("Parent", style="dim")

        for obj in scene_obj.objects:
            marker = "*" if obj.id in scene_obj.selection else ""
            table.add_row(
                obj.id,
                obj.name + marker,
                obj.type,
                _fmt_vec(obj.transform.position),
                _material_label(obj.material),
                obj.parent or "-",
            )
        console.print(table)
    else:
        console.print("\n[yellow]No objects in scene[/yellow]")

    if scene_obj.materials:
        console.print(f"\n[cyan]Materials ({len(scene_obj.materials)}):[/cyan]")
        table = Table()
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Color", style="magenta")
        table.add_column("Metal/Rough", style="yellow")
        for material in scene_obj.materials:
            table.add_row(
                material.id or "-",
                material.name or "",
                material.type,
                material.color,
                f"{material.metalness:.2f}/{material.roughness:.2f}",
            )
        console.print(table)

    if scene_obj.lights:
        console.print(f"\n[cyan]Lights ({len(scene_obj.lights)}):[/cyan]")
        table = Table()
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Intensity", style="yellow")
        table.add_column("Position", style="green")
        for light in scene_obj.lights:
            table.add_row(
                light.id,
                light.name,
                light.type,
                f"{light.intensity:.2f}",
                _fmt_vec(light.position),
            )
        console.print(table)


@scene.command("tree")
@click.argument("scene_file", type=click.Path(exists=True))
def scene_tree_cmd(scene_file: str) -> None:
    """Show the object hierarchy with world positions.

    SCENE_FILE: Path to the scene file
    """
    scene_obj = _load_scene(scene_file)

    root = Tree(f"[bold]{scene_obj.name}[/bold]")
    index = {obj.id: obj for obj in scene_obj.objects}
    shown: set[str] = set()

    def add_node(branch: Tree, object_id: str) -> None:
        if object_id in shown or object_id not in index:
            return
        shown.add(object_id)
        obj = index[object_id]
        world = scene_tree.world_matrix(scene_obj, object_id)[:3, 3]
        node = branch.add(
            f"[cyan]{obj.name}[/cyan] [dim]{obj.id}[/dim] "
            f"world {_fmt_vec(tuple(world))}"
        )
        for child_id in obj.children or ():
            add_node(node, child_id)

    for obj in scene_tree.roots(scene_obj):
        add_node(root, obj.id)

    console.print(root)

    unreachable = len(scene_obj.objects) - len(shown)
    if unreachable:
        console.print(f"[yellow]{unreachable} object(s) not reachable from a root[/yellow]")


@scene.command("apply")
@click.argument("scene_file", type=click.Path(exists=True))
@click.argument("actions_file", type=click.Path(exists=True))
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Where to write the result (defaults to SCENE_FILE)",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Engine configuration file",
)
def scene_apply(scene_file: str, actions_file: str, output: str | None, config_path: str | None) -> None:
    """Apply a list of actions to a scene.

    SCENE_FILE: Path to the scene file
    ACTIONS_FILE: JSON file holding one action or a list of actions
    """
    scene_obj = _load_scene(scene_file)

    try:
        cfg = EngineConfig.from_file(config_path) if config_path else EngineConfig.default()
    except ValidationError as e:
        console.print(f"[red]Invalid config file {config_path}: {escape(str(e))}[/red]")
        raise click.Abort()

    with open(actions_file) as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        console.print("[red]Actions file must contain an action or a list of actions[/red]")
        raise click.Abort()

    engine = SceneEngine(scene_obj, config=cfg)

    applied = 0
    ignored = 0
    for i, item in enumerate(payload):
        if not isinstance(item, dict) or "type" not in item:
            console.print(f"[yellow]Skipping entry {i}: not an action[/yellow]")
            ignored += 1
            continue
        if engine.dispatch(item):
            applied += 1
        else:
            ignored += 1

    output_path = Path(output) if output else Path(scene_file)
    engine.get_scene().save(output_path)

    console.print(f"[green]Applied {applied} action(s)[/green], {ignored} ignored")
    console.print(f"Saved: {output_path}")


@scene.command("check")
@click.argument("scene_file", type=click.Path(exists=True))
def scene_check(scene_file: str) -> None:
    """Check the integrity of a scene's hierarchy.

    SCENE_FILE: Path to the scene file
    """
    scene_obj = _load_scene(scene_file)

    is_valid, errors = scene_tree.validate_hierarchy(scene_obj)
    if is_valid:
        console.print(f"[green]Hierarchy OK ({len(scene_obj.objects)} objects)[/green]")
        return

    console.print("[bold red]Hierarchy errors:[/bold red]")
    for error in errors:
        console.print(f"  [red]{error}[/red]")
    raise click.Abort()


@scene.command("diff")
@click.argument("old_file", type=click.Path(exists=True))
@click.argument("new_file", type=click.Path(exists=True))
def scene_diff(old_file: str, new_file: str) -> None:
    """Show the render calls needed to go from one scene to another.

    OLD_FILE: Scene already materialized
    NEW_FILE: Scene to reconcile to
    """
    old_scene = _load_scene(old_file)
    new_scene = _load_scene(new_file)

    reconciler, adapters = recording_reconciler()
    reconciler.sync(old_scene)
    for adapter in adapters.values():
        adapter.reset()

    result = reconciler.sync(new_scene)

    table = Table()
    table.add_column("Collection", style="cyan")
    table.add_column("Create", style="green")
    table.add_column("Update", style="yellow")
    table.add_column("Dispose", style="red")

    for kind, diff in (
        ("materials", result.materials),
        ("objects", result.objects),
        ("lights", result.lights),
    ):
        table.add_row(
            kind,
            ", ".join(diff.created) or "-",
            str(len(diff.updated)),
            ", ".join(diff.removed) or "-",
        )

    console.print(table)
    console.print(f"Total calls: {result.total_calls}")


if __name__ == "__main__":
    main()
