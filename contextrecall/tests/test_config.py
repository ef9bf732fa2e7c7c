"""Tests for engine configuration."""

import pytest
import yaml

from contextrecall.engine.config import EngineConfig, ProfileConfig, RecencyBucket
from contextrecall.engine.error_handling import ConfigError


class TestDefaults:
    """Per-mode profiles carry their own constants."""

    def test_profiles_differ(self):
        config = EngineConfig()
        assert config.profile(False) is config.lexical
        assert config.profile(True) is config.semantic
        assert config.lexical.max_context_chars == 3000
        assert config.semantic.max_context_chars == 4000
        assert config.lexical.pinned_boost == 0.3
        assert config.semantic.pinned_boost == 0.2
        assert [b.boost for b in config.semantic.recency] == [0.15, 0.12, 0.08, 0.04]

    def test_pools_and_caps(self):
        config = EngineConfig()
        assert config.lexical.memory_pool.recent == 50
        assert config.lexical.memory_pool.per_keyword == 0
        assert config.semantic.activity_pool.recent == 50
        assert config.semantic.activity_pool.per_keyword == 30
        assert (config.limits.memories, config.limits.clipboard,
                config.limits.activities, config.limits.searches) == (15, 10, 15, 10)
        assert config.cache.max_size == 500


class TestValidation:

    def test_unordered_recency_rejected(self):
        with pytest.raises(ValueError):
            ProfileConfig(recency=[
                RecencyBucket(max_age_hours=24, boost=0.1),
                RecencyBucket(max_age_hours=1, boost=0.2),
            ])

    def test_threshold_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(scoring={"min_semantic_score": 1.5})

    def test_non_positive_cache_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(cache={"max_size": 0})


class TestLoadSave:
    """YAML round trip and error reporting."""

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        config = EngineConfig(cache={"max_size": 64})
        config.save(path)

        loaded = EngineConfig.load(path)
        assert loaded.cache.max_size == 64
        assert loaded.semantic.max_context_chars == 4000

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"limits": {"clipboard": 4}}))

        loaded = EngineConfig.load(path)
        assert loaded.limits.clipboard == 4
        assert loaded.limits.memories == 15

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert EngineConfig.load(path) == EngineConfig()

    def test_invalid_file_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scoring: {min_lexical_score: -1}")
        with pytest.raises(ConfigError):
            EngineConfig.load(path)

    def test_non_mapping_file_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            EngineConfig.load(path)

    def test_missing_file_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            EngineConfig.load(tmp_path / "absent.yaml")

    def test_no_file_found_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert EngineConfig.load() == EngineConfig()
