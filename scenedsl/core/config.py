"""Engine configuration.

Pydantic models for the tunable policies of the engine. They can be built in
code or read from a JSON file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class HistoryParams(BaseModel):
    """Undo/redo history parameters."""

    max_entries: int = Field(
        default=50,
        ge=1,
        description="Maximum number of undoable transitions kept"
    )


class ReducerParams(BaseModel):
    """Policies applied by the reducer.

    ``REMOVE_OBJECT`` never leaves dangling parent/children links. What it
    does with the removed object's descendants is a policy choice:

    - orphan: direct children become root objects
    - cascade: the whole subtree is removed with the object
    """

    removal_policy: Literal["orphan", "cascade"] = Field(
        default="orphan",
        description="What REMOVE_OBJECT does with descendants"
    )


class DispatchParams(BaseModel):
    """Re-entrant dispatch handling.

    A subscriber that dispatches while the engine is still applying or
    replaying either gets its action queued until the current operation
    finishes (defer) or gets an error (reject).
    """

    reentrancy: Literal["defer", "reject"] = Field(
        default="defer",
        description="Handling of dispatch calls made from subscribers"
    )
    max_deferred: int = Field(
        default=100,
        ge=1,
        description="Maximum queued re-entrant dispatches per outer operation"
    )


class EngineConfig(BaseModel):
    """Everything a SceneEngine can be tuned with.

    Unknown sections are rejected so that a misspelt key in a config file
    fails loudly instead of silently falling back to a default.
    """

    history: HistoryParams = Field(default_factory=HistoryParams)
    reducer: ReducerParams = Field(default_factory=ReducerParams)
    dispatch: DispatchParams = Field(default_factory=DispatchParams)

    model_config = {"extra": "forbid"}

    @classmethod
    def from_file(cls, path: Path | str) -> EngineConfig:
        """Read an engine configuration from JSON.

        Raises:
            FileNotFoundError: If the file does not exist
            pydantic.ValidationError: If the content is not a valid config
        """
        text = Path(path).read_text()
        return cls.model_validate(json.loads(text))

    def to_file(self, path: Path | str) -> None:
        """Write this configuration as indented JSON, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.model_dump(mode="json"), indent=2))

    @classmethod
    def default(cls) -> EngineConfig:
        """Configuration with every parameter at its default."""
        return cls()
