"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from catalogminer.config.config import Config, LazyConfig, PolitenessPreset, settings


@pytest.mark.unit
class TestConfig:
    def test_default_presets(self):
        config = Config()
        normal = config.enrichment.preset("normal")
        fast = config.enrichment.preset("fast")
        assert (normal.workers, normal.retries, normal.timeout) == (3, 3, 18.0)
        assert (fast.workers, fast.retries, fast.timeout) == (10, 1, 9.0)
        assert config.enrichment.max_items == 30
        assert config.pagination.max_pages == 50

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="turbo"):
            Config().enrichment.preset("turbo")

    def test_delay_range_is_validated(self):
        with pytest.raises(ValidationError):
            PolitenessPreset(workers=1, retries=0, delay_min=0.5, delay_max=0.1, timeout=1.0)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "catalogminer.yaml"
        path.write_text(
            "enrichment:\n"
            "  max_items: 5\n"
            "  presets:\n"
            "    slow:\n"
            "      workers: 1\n"
            "      retries: 5\n"
            "      delay_min: 1.0\n"
            "      delay_max: 2.0\n"
            "      timeout: 30\n"
            "lexicon:\n"
            "  check_number_prefix: '49'\n",
            encoding="utf-8",
        )
        config = Config.from_yaml(path)
        assert config.enrichment.max_items == 5
        assert config.enrichment.preset("slow").retries == 5
        assert config.lexicon.check_number_prefix == "49"

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path).crawler.start_page_retries == 2

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CATALOGMINER_PAGINATION__MAX_PAGES", "7")
        monkeypatch.setenv("CATALOGMINER_CRAWLER__TIMEOUT", "5.5")
        config = Config()
        assert config.pagination.max_pages == 7
        assert config.crawler.timeout == 5.5

    def test_log_file_parent_is_created(self, tmp_path):
        target = tmp_path / "logs" / "run.log"
        config = Config.model_validate({"monitoring": {"log_file": str(target)}})
        assert config.monitoring.log_file == str(target)
        assert target.parent.is_dir()


@pytest.mark.unit
class TestLazySettings:
    @pytest.fixture(autouse=True)
    def reset(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(LazyConfig, "_config", None)

    def test_defaults_without_config_file(self):
        assert settings.pagination.max_pages == 50

    def test_loads_config_file_from_working_directory(self, tmp_path):
        (tmp_path / "catalogminer.yaml").write_text("pagination:\n  max_pages: 4\n", encoding="utf-8")
        assert settings.pagination.max_pages == 4

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "catalogminer.yaml").write_text("pagination:\n  max_pages: many\n", encoding="utf-8")
        assert settings.pagination.max_pages == 50
