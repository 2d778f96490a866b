"""
Tests for ConfigManager (core/config.py).
"""

import json

from branchboard.core.config import ConfigManager


class TestConfigManager:
    """Tests for loading and saving configuration."""

    def test_defaults(self, tmp_config):
        assert tmp_config.schema_sample_size == 10
        assert tmp_config.sample_size == 200
        assert tmp_config.top_values == 6
        assert tmp_config.log_level == "INFO"

    def test_set_persists(self, tmp_config):
        tmp_config.set("top_values", 3)
        reloaded = ConfigManager(config_dir=tmp_config.config_dir)
        assert reloaded.top_values == 3

    def test_merges_saved_with_defaults(self, tmp_dir):
        config_dir = tmp_dir / "cfg"
        config_dir.mkdir()
        (config_dir / "config.json").write_text(json.dumps({"sample_size": 50}))
        config = ConfigManager(config_dir=config_dir)
        assert config.sample_size == 50
        assert config.chart_sample_size == 5000

    def test_invalid_values_fall_back(self, tmp_dir):
        config_dir = tmp_dir / "cfg"
        config_dir.mkdir()
        (config_dir / "config.json").write_text(json.dumps({"sort_check_size": "lots", "top_values": -1}))
        config = ConfigManager(config_dir=config_dir)
        assert config.sort_check_size == 50
        assert config.top_values == 6

    def test_corrupt_file_uses_defaults(self, tmp_dir):
        config_dir = tmp_dir / "cfg"
        config_dir.mkdir()
        (config_dir / "config.json").write_text("{not json")
        assert ConfigManager(config_dir=config_dir).schema_sample_size == 10
