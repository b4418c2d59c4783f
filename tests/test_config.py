"""Tests for engine configuration."""

import json

import pytest
from pydantic import ValidationError

from scenedsl.core.config import EngineConfig, ReducerParams


class TestEngineConfig:
    """Test EngineConfig loading and validation."""

    def test_defaults(self):
        """Test default values."""
        cfg = EngineConfig.default()
        assert cfg.history.max_entries == 50
        assert cfg.reducer.removal_policy == "orphan"
        assert cfg.dispatch.reentrancy == "defer"
        assert cfg.dispatch.max_deferred == 100

    def test_file_roundtrip(self, tmp_path):
        """Test saving and loading a config file."""
        cfg = EngineConfig.model_validate({
            "history": {"max_entries": 10},
            "reducer": {"removal_policy": "cascade"},
        })
        path = tmp_path / "config" / "engine.json"
        cfg.to_file(path)

        loaded = EngineConfig.from_file(path)

        assert loaded == cfg
        assert loaded.reducer.removal_policy == "cascade"

    def test_partial_file(self, tmp_path):
        """Test missing sections fall back to defaults."""
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"dispatch": {"reentrancy": "reject"}}))

        cfg = EngineConfig.from_file(path)

        assert cfg.dispatch.reentrancy == "reject"
        assert cfg.history.max_entries == 50

    def test_unknown_section_rejected(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"renderer": {}})

    def test_invalid_values_rejected(self):
        """Test out-of-range and unknown option values are rejected."""
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"history": {"max_entries": 0}})
        with pytest.raises(ValidationError):
            ReducerParams(removal_policy="shred")
