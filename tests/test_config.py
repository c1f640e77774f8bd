"""
Tests for chunkseal.config — file, environment and validation.
"""

from __future__ import annotations

import pytest

from chunkseal import DEFAULT_CHUNK_SIZE, DEFAULT_READ_SIZE
from chunkseal.config import ENV_CHUNK_SIZE, ENV_READ_SIZE, TreeConfig, load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "[tree]\n"
        "chunk_size = 4096\n"
        "read_size = 100\n"
        "\n"
        "[logging]\n"
        'level = "debug"\n'
    )
    return path


class TestTreeConfig:

    def test_defaults(self):
        config = TreeConfig()
        assert config.chunk_size == DEFAULT_CHUNK_SIZE == 262144
        assert config.read_size == DEFAULT_READ_SIZE
        assert config.log_level == "WARNING"

    def test_rejects_bad_chunk_size(self):
        with pytest.raises(ValueError, match="power of two"):
            TreeConfig(chunk_size=3000)

    def test_rejects_bad_read_size(self):
        with pytest.raises(ValueError, match="read_size"):
            TreeConfig(read_size=0)

    def test_rejects_bad_log_level(self):
        with pytest.raises(ValueError, match="log level"):
            TreeConfig(log_level="LOUD")


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "none.toml", env={}) == TreeConfig()

    def test_file_values(self, config_file):
        config = load_config(config_file, env={})
        assert config.chunk_size == 4096
        assert config.read_size == 100
        assert config.log_level == "debug"

    def test_env_overrides_file(self, config_file):
        env = {ENV_CHUNK_SIZE: "0x2000", ENV_READ_SIZE: "65536"}
        config = load_config(config_file, env=env)
        assert config.chunk_size == 8192
        assert config.read_size == 65536

    def test_blank_env_ignored(self, config_file):
        config = load_config(config_file, env={ENV_CHUNK_SIZE: "  "})
        assert config.chunk_size == 4096

    def test_env_not_integer(self, tmp_path):
        with pytest.raises(ValueError, match=ENV_CHUNK_SIZE):
            load_config(tmp_path / "none.toml", env={ENV_CHUNK_SIZE: "big"})

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[tree]\nchunk_size = 1000\n")
        with pytest.raises(ValueError, match="power of two"):
            load_config(path, env={})

    def test_broken_toml_warns(self, tmp_path, caplog):
        path = tmp_path / "config.toml"
        path.write_text("[tree\nchunk_size = ")
        with caplog.at_level("WARNING", logger="chunkseal.config"):
            assert load_config(path, env={}) == TreeConfig()
        assert "Failed to load config" in caplog.text

    def test_section_must_be_table(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('tree = "flat"\n')
        with pytest.raises(ValueError, match="TOML tables"):
            load_config(path, env={})

    def test_default_path_uses_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".chunkseal").mkdir()
        (tmp_path / ".chunkseal" / "config.toml").write_text("[tree]\nchunk_size = 2048\n")
        assert load_config(env={}).chunk_size == 2048
