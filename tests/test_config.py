"""
Tests for layered configuration.
"""

import pytest

from keepsake_storage.config import StorageConfig

ENV_VARS = (
    "KEEPSAKE_HOME",
    "KEEPSAKE_MAX_WIDTH",
    "KEEPSAKE_QUALITY",
    "KEEPSAKE_DEFAULT_SENDER",
    "KEEPSAKE_SEED_EXAMPLES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestStorageConfig:
    """Tests for StorageConfig.load."""

    def test_defaults(self, tmp_path) -> None:
        config = StorageConfig.load(tmp_path)

        assert config.base_path == tmp_path
        assert config.max_width == 1280
        assert config.quality == 0.82
        assert config.default_sender == "Anna"
        assert config.seed_examples is False
        assert config.records_path == tmp_path / "records"
        assert config.photos_db_path == tmp_path / "photos.db"

    def test_home_from_environment(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("KEEPSAKE_HOME", str(tmp_path))
        assert StorageConfig.load().base_path == tmp_path

    def test_yaml_section(self, tmp_path) -> None:
        (tmp_path / "settings.yaml").write_text(
            "keepsake:\n  max_width: 800\n  default_title: Ours\n  seed_examples: true\n"
        )
        config = StorageConfig.load(tmp_path)

        assert config.max_width == 800
        assert config.default_title == "Ours"
        assert config.seed_examples is True

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "settings.yaml").write_text("keepsake:\n  max_width: 800\n  quality: 0.5\n")
        monkeypatch.setenv("KEEPSAKE_MAX_WIDTH", "640")
        monkeypatch.setenv("KEEPSAKE_DEFAULT_SENDER", "Luca")

        config = StorageConfig.load(tmp_path)
        assert config.max_width == 640
        assert config.quality == 0.5
        assert config.default_sender == "Luca"

    def test_unknown_and_invalid_yaml_ignored(self, tmp_path) -> None:
        (tmp_path / "settings.yaml").write_text("keepsake:\n  colour: blue\n")
        assert StorageConfig.load(tmp_path).max_width == 1280

        (tmp_path / "settings.yaml").write_text("keepsake: [unclosed\n")
        assert StorageConfig.load(tmp_path).max_width == 1280

    def test_yaml_cannot_move_base_path(self, tmp_path) -> None:
        (tmp_path / "settings.yaml").write_text("keepsake:\n  base_path: /elsewhere\n")
        assert StorageConfig.load(tmp_path).base_path == tmp_path
