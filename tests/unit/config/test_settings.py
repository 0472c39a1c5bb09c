"""Unit tests for Settings class and get_settings function."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from labelsync.annotations.enums import IssueTag
from labelsync.config import get_settings, reload_settings
from labelsync.config.loader import load_toml
from labelsync.config.settings import Settings, set_toml_config
from labelsync.pairing import DEFAULT_PAIRING_TABLE

REPO_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


@pytest.fixture(autouse=True)
def empty_toml() -> None:
    """Start every test without TOML values."""
    set_toml_config({})


@pytest.fixture
def use_config_dir(monkeypatch: pytest.MonkeyPatch):
    def _use(config_dir: Path, env: str = "nonexistent") -> None:
        monkeypatch.setenv("LABELSYNC_CONFIG_DIR", str(config_dir))
        monkeypatch.setenv("LABELSYNC_ENV", env)

    return _use


class TestSettings:
    """Tests for Settings model."""

    def test_default_values(self) -> None:
        """Settings has sensible defaults."""
        settings = Settings()
        assert settings.app_name == "labelsync"
        assert settings.debug is False

    def test_dataset_host_defaults(self) -> None:
        """Dataset host defaults point at the public hub."""
        settings = Settings()
        assert settings.dataset_host.base_url == "https://huggingface.co/datasets"
        assert settings.dataset_host.supported_versions == ["v3.0", "v2.1", "v2.0"]
        assert settings.dataset_host.lineage_path == "meta/episodes.jsonl"

    def test_storage_defaults(self) -> None:
        """Storage configuration has defaults."""
        settings = Settings()
        assert settings.storage.backend == "inmemory"
        assert settings.storage.tables.frames == "frame_labels"

    def test_annotation_defaults(self) -> None:
        """Annotation defaults carry the built-in pairing table."""
        settings = Settings()
        assert settings.annotation.fps == 30
        assert settings.annotation.pairing == list(DEFAULT_PAIRING_TABLE)

    def test_invalid_backend_rejected(self) -> None:
        """Unknown backends fail validation."""
        with pytest.raises(ValidationError):
            Settings(storage={"backend": "redis"})


class TestShippedConfig:
    """Tests for the repository's config/ files."""

    def test_default_toml_matches_model(self) -> None:
        """config/default.toml validates and mirrors the built-in pairing table."""
        set_toml_config(load_toml(REPO_CONFIG_DIR / "default.toml"))

        settings = Settings()

        assert settings.annotation.pairing == list(DEFAULT_PAIRING_TABLE)
        assert settings.observability.logging.format == "json"

    def test_development_overrides(self, use_config_dir) -> None:
        """The development environment switches to console logging."""
        use_config_dir(REPO_CONFIG_DIR, env="development")

        settings = get_settings()

        assert settings.debug is True
        assert settings.observability.logging.format == "console"


class TestGetSettings:
    """Tests for get_settings function."""

    def test_returns_settings_instance(self, test_config_dir, mock_toml_files, use_config_dir) -> None:
        """get_settings returns a Settings instance."""
        mock_toml_files({"default.toml": "app_name = 'test'"})
        use_config_dir(test_config_dir)

        settings = get_settings()

        assert isinstance(settings, Settings)
        assert settings.app_name == "test"

    def test_settings_cached(self, test_config_dir, mock_toml_files, use_config_dir) -> None:
        """get_settings returns cached instance."""
        mock_toml_files({"default.toml": "app_name = 'cached'"})
        use_config_dir(test_config_dir)

        assert get_settings() is get_settings()

    def test_reload_settings_clears_cache(
        self, test_config_dir, mock_toml_files, use_config_dir
    ) -> None:
        """reload_settings returns fresh instance."""
        mock_toml_files({"default.toml": "app_name = 'original'"})
        use_config_dir(test_config_dir)
        assert get_settings().app_name == "original"

        mock_toml_files({"default.toml": "app_name = 'updated'"})

        assert reload_settings().app_name == "updated"

    def test_pairing_table_from_toml(self, test_config_dir, mock_toml_files, use_config_dir) -> None:
        """A new pair is a configuration change."""
        mock_toml_files(
            {
                "default.toml": (
                    "[[annotation.pairing]]\n"
                    "issue_tag = 'frozen_cam'\n"
                    "recovery_tag = 'collision_between_arms'\n"
                )
            }
        )
        use_config_dir(test_config_dir)

        pairing = get_settings().annotation.pairing

        assert len(pairing) == 1
        assert pairing[0].issue_tag is IssueTag.FROZEN_CAM


class TestEnvironmentVariableOverrides:
    """Tests for environment variable configuration overrides."""

    def test_top_level_override(
        self, test_config_dir, mock_toml_files, use_config_dir, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Top-level values can be overridden with env vars."""
        mock_toml_files({"default.toml": "debug = false"})
        use_config_dir(test_config_dir)
        monkeypatch.setenv("LABELSYNC_DEBUG", "true")

        assert get_settings().debug is True

    def test_nested_override(
        self, test_config_dir, mock_toml_files, use_config_dir, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Nested values can be overridden with double underscore."""
        mock_toml_files({"default.toml": "[annotation]\nfps = 30"})
        use_config_dir(test_config_dir)
        monkeypatch.setenv("LABELSYNC_ANNOTATION__FPS", "25")

        assert get_settings().annotation.fps == 25

    def test_deeply_nested_override(
        self, test_config_dir, mock_toml_files, use_config_dir, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Secrets come from the environment, keeping TOML siblings."""
        mock_toml_files({"default.toml": "[storage.postgrest]\ntimeout = 5.0"})
        use_config_dir(test_config_dir)
        monkeypatch.setenv("LABELSYNC_STORAGE__POSTGREST__API_KEY", "anon-key")

        postgrest = get_settings().storage.postgrest
        assert postgrest.api_key == "anon-key"
        assert postgrest.timeout == 5.0
