"""
Tests for configuration loading.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from guardedfs.config import (
    CONFIG_ENV_VAR,
    DEFAULT_AUDIT_LOG,
    DEFAULT_FILE_MODE,
    GateConfig,
    config_from_dict,
    load_config,
)
from guardedfs.errors import ConfigError


class TestLoadConfig:
    """Test load_config."""

    @pytest.fixture
    def temp_config(self):
        """Create a temporary config file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("""guardedfs:
  file_mode: "0600"
  audit_log: logs/fs.jsonl
  audit_operations: true
  fsync: false
  denial_patterns:
    - Read-only file system
""")
        yield f.name
        os.unlink(f.name)

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))

        assert config == GateConfig()
        assert config.file_mode == DEFAULT_FILE_MODE == 0o644
        assert config.audit_log == DEFAULT_AUDIT_LOG
        assert config.audit_operations is False
        assert config.fsync is True
        assert config.denial_patterns == ()

    def test_load_nested_section(self, temp_config):
        config = load_config(temp_config)

        assert config.file_mode == 0o600
        assert config.audit_log == "logs/fs.jsonl"
        assert config.audit_operations is True
        assert config.fsync is False
        assert config.denial_patterns == ("read-only file system",)

    def test_load_root_level_settings(self, tmp_path):
        path = tmp_path / "guardedfs.yaml"
        path.write_text("audit_operations: true\n")

        assert load_config(str(path)).audit_operations is True

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("guardedfs:\n  fsync: false\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_config().fsync is False

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)) == GateConfig()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("guardedfs: [unclosed\n")

        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            load_config(str(path))


class TestConfigFromDict:
    """Test value validation."""

    @pytest.mark.parametrize("value, expected", [
        (420, 0o644),
        ("644", 0o644),
        ("0644", 0o644),
        ("0o640", 0o640),
    ])
    def test_file_mode_forms(self, value, expected):
        assert config_from_dict({"file_mode": value}).file_mode == expected

    @pytest.mark.parametrize("value", ["rw-r--r--", "0999", True, 0o17777, 1.5])
    def test_invalid_file_mode(self, value):
        with pytest.raises(ConfigError):
            config_from_dict({"file_mode": value})

    def test_invalid_bool(self):
        with pytest.raises(ConfigError):
            config_from_dict({"audit_operations": "yes please"})

    def test_invalid_patterns(self):
        with pytest.raises(ConfigError):
            config_from_dict({"denial_patterns": "access is denied"})

    def test_blank_patterns_dropped(self):
        config = config_from_dict({"denial_patterns": ["  ", "Quota Exceeded"]})

        assert config.denial_patterns == ("quota exceeded",)

    def test_unknown_keys_ignored(self):
        assert config_from_dict({"guardedfs": {"colour": "blue"}}) == GateConfig()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
