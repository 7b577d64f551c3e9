"""
Tests for symjump.core.config — SymJumpConfig defaults, environment
loading and validation.
"""

from pathlib import Path

import pytest

from symjump.core.config import SymJumpConfig
from symjump.exceptions import ConfigError


class TestDefaults:

    def test_ripgrep_limits(self):
        cfg = SymJumpConfig()
        assert cfg.rg_binary == "rg"
        assert cfg.rg_timeout_seconds == 10.0
        assert cfg.rg_max_output_bytes == 10 * 1024 * 1024
        assert cfg.rg_max_filesize == "1M"

    def test_scoring_constants(self):
        cfg = SymJumpConfig()
        assert cfg.max_recency_entries == 1000
        assert (cfg.recency_weight, cfg.decay_factor, cfg.max_age_hours) == (0.7, 0.9, 48.0)
        assert (cfg.frequency_cap, cfg.max_score) == (50, 100.0)
        assert (cfg.fuzzy_weight, cfg.recency_rank_weight) == (0.6, 0.4)
        assert cfg.max_visible_items == 20

    def test_store_keys(self):
        cfg = SymJumpConfig()
        assert cfg.recency_store_key == "symjump.recencyEntries"
        assert cfg.last_command_store_key == "symjump.lastCommand"

    def test_defaults_validate(self):
        assert SymJumpConfig().validate() is True


class TestFromEnv:

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SYMJUMP_RG", "/opt/bin/rg")
        monkeypatch.setenv("SYMJUMP_RG_TIMEOUT", "2.5")
        monkeypatch.setenv("SYMJUMP_MAX_WORKERS", "8")
        monkeypatch.setenv("SYMJUMP_STATE_DIR", str(tmp_path))
        monkeypatch.setenv("SYMJUMP_LOG_LEVEL", "debug")
        cfg = SymJumpConfig.from_env()
        assert cfg.rg_binary == "/opt/bin/rg"
        assert cfg.rg_timeout_seconds == 2.5
        assert cfg.max_workers == 8
        assert cfg.get_state_path() == tmp_path / "state.db"
        assert cfg.log_level == "DEBUG"

    def test_unset_environment_uses_defaults(self, monkeypatch):
        for name in ("SYMJUMP_RG", "SYMJUMP_RG_TIMEOUT", "SYMJUMP_MAX_WORKERS",
                     "SYMJUMP_STATE_DIR", "SYMJUMP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        cfg = SymJumpConfig.from_env()
        assert cfg.rg_binary == "rg"
        assert cfg.get_state_path() == Path.home() / ".symjump" / "state.db"


class TestValidate:

    @pytest.mark.parametrize("overrides", [
        {"rg_timeout_seconds": 0},
        {"rg_max_output_bytes": 0},
        {"max_workers": 0},
        {"max_recency_entries": 0},
        {"frequency_cap": 0},
        {"decay_factor": 0.0},
        {"decay_factor": 1.5},
        {"recency_weight": 1.2},
        {"fuzzy_weight": -0.1},
        {"max_visible_items": 0},
    ])
    def test_out_of_range(self, overrides):
        with pytest.raises(ConfigError):
            SymJumpConfig(**overrides).validate()

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            SymJumpConfig(max_workers=-1).validate()
