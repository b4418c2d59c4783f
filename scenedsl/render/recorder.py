"""Recording collaborator.

An EntityAdapter that keeps plain-dict copies of descriptors as its handles
and logs every call. Useful as a test double and for showing what a
renderer would be asked to do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

from .reconcile import EntityAdapter, SceneReconciler


@dataclass(frozen=True)
class AdapterCall:
    """One call received by a RecordingAdapter."""

    kind: str
    op: Literal["create", "update", "dispose"]
    key: str


class RecordingAdapter(EntityAdapter[dict]):
    """Adapter whose handles are dict dumps of the descriptors.

    Several adapters can share one ``log`` list to observe the order in
    which collections are reconciled.
    """

    def __init__(self, kind: str = "entity", log: list[AdapterCall] | None = None):
        self.kind = kind
        self.calls: list[AdapterCall] = []
        self.live: dict[str, dict] = {}
        self._log = log

    def key(self, descriptor: Any) -> str | None:
        if isinstance(descriptor, dict):
            return descriptor.get("id")
        return super().key(descriptor)

    def create(self, descriptor: Any) -> dict:
        handle = _dump(descriptor)
        self._record("create", handle["id"])
        self.live[handle["id"]] = handle
        return handle

    def update(self, handle: dict, descriptor: Any) -> None:
        handle.clear()
        handle.update(_dump(descriptor))
        self._record("update", handle["id"])

    def dispose(self, handle: dict) -> None:
        self._record("dispose", handle["id"])
        self.live.pop(handle["id"], None)

    def _record(self, op: Literal["create", "update", "dispose"], key: str) -> None:
        call = AdapterCall(self.kind, op, key)
        self.calls.append(call)
        if self._log is not None:
            self._log.append(call)

    def ops(self, op: str) -> list[str]:
        """Keys of all recorded calls of one kind."""
        return [call.key for call in self.calls if call.op == op]

    def reset(self) -> None:
        """Forget recorded calls (live handles are kept)."""
        self.calls.clear()


def _dump(descriptor: Any) -> dict:
    if isinstance(descriptor, BaseModel):
        return descriptor.model_dump(mode="json")
    return dict(descriptor)


def recording_reconciler(log: list[AdapterCall] | None = None):
    """Build a SceneReconciler whose three adapters are RecordingAdapters.

    Returns:
        Tuple of (reconciler, {kind: adapter})
    """
    adapters = {
        kind: RecordingAdapter(kind, log)
        for kind in ("materials", "objects", "lights")
    }
    return SceneReconciler(**adapters), adapters
