#!/usr/bin/env python3
"""Example: Build a small scene and mirror it into a render graph.

This script demonstrates the basic workflow for SceneDSL:
1. Create an engine and subscribe a reconciler
2. Change the scene through actions
3. Undo and redo, watching the render calls

Run with: python examples/basic_scene.py
"""

from scenedsl import SceneEngine
from scenedsl.render import recording_reconciler


def main():
    engine = SceneEngine()
    log = []
    reconciler, adapters = recording_reconciler(log)
    engine.subscribe(reconciler.sync)
    reconciler.sync(engine.get_scene())

    print("SceneDSL - Basic Scene Example")
    print("=" * 40)

    print("\n1. Building a table...")
    table = engine.add_object(name="Table", type="group", transform={"position": [0, 0.75, 0]})
    top = engine.add_object(name="Top", geometry={"type": "box", "size": [2, 0.1, 1]})
    engine.move_object(top, table)

    wood = engine.add_material(name="Wood", color="#8b5a2b", roughness=0.8)
    engine.apply_material([top], wood)

    for x in (-0.9, 0.9):
        leg = engine.add_object(
            name="Leg",
            geometry={"type": "cylinder", "radius": 0.05, "height": 0.75},
            transform={"position": [x, -0.375, 0]},
        )
        engine.move_object(leg, table)

    scene = engine.get_scene()
    print(f"   Objects: {len(scene.objects)}")
    print(f"   Table children: {len(engine.get_children(table))}")
    print(f"   Leg world position: {engine.get_world_matrix(leg)[:3, 3]}")
    print(f"   Live render objects: {len(adapters['objects'].live)}")

    print("\n2. Undoing the last leg...")
    log.clear()
    engine.undo()
    engine.undo()
    print(f"   Render calls: {[(c.op, c.kind) for c in log if c.op != 'update']}")
    print(f"   Live render objects: {len(adapters['objects'].live)}")

    print("\n3. Redoing...")
    engine.redo()
    engine.redo()
    print(f"   Live render objects: {len(adapters['objects'].live)}")
    print(f"   Scene hash: {engine.get_scene().content_hash()}")

    reconciler.dispose_all()
    print("\nDone!")


if __name__ == "__main__":
    main()
