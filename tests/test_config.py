"""Tests for config loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from services.config import get_enabled_feeds, load_config

CONFIG_YAML = """
DATABASE_PATH: data/test.db
OLLAMA_MODEL: llama3.1:8b
coordinator:
  cooldown_minutes: 20
  max_merge_items: 4
collection:
  news_interval_hours: 1
  news_feeds:
    - name: world
      url: https://example.com/world.xml
      category: world
    - name: off
      url: https://example.com/off.xml
      enabled: false
    - category: broken
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("TEST_MODE", raising=False)
    monkeypatch.delenv("OLLAMA_BASE_URL", raising=False)
    monkeypatch.delenv("METALPRICE_API_KEY", raising=False)
    monkeypatch.delenv("EIA_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "config.yml"
    path.write_text(CONFIG_YAML)
    return str(path)


class TestLoadConfig:

    def test_reads_yaml_sections(self, config_path) -> None:
        config = load_config(config_path)
        assert config.DATABASE_PATH == "data/test.db"
        assert config.OLLAMA_BASE_URL == "http://localhost:11434"
        assert config.coordinator.cooldown == 20 * 60
        assert config.coordinator.max_merge_items == 4
        assert config.coordinator.idle_poll_interval == 5 * 60
        assert config.collection.news_interval == 3600
        assert not config.TEST_MODE

    def test_feeds_parsed_and_filtered(self, config_path) -> None:
        config = load_config(config_path)
        # the entry without a url is skipped
        assert [f.name for f in config.collection.news_feeds] == ["world", "off"]
        assert [f.name for f in get_enabled_feeds(config.collection)] == ["world"]

    def test_environment_overrides(self, config_path, monkeypatch) -> None:
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434")
        monkeypatch.setenv("METALPRICE_API_KEY", "secret")
        config = load_config(config_path)
        assert config.OLLAMA_BASE_URL == "http://gpu-box:11434"
        assert config.METALPRICE_API_KEY == "secret"
        assert config.EIA_API_KEY is None

    def test_test_mode(self, config_path) -> None:
        config = load_config(config_path, test_mode=True)
        assert config.TEST_MODE
        assert config.coordinator.cooldown == pytest.approx(10)
        assert config.collection.news_interval == pytest.approx(30)
        assert config.collection.price_interval == pytest.approx(30)
        assert config.collection.use_mocks

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yml"))

    def test_empty_sections_use_defaults(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("TEST_MODE", raising=False)
        path = tmp_path / "config.yml"
        path.write_text("coordinator:\ncollection:\n  location:\n  news_feeds:\n")
        config = load_config(str(path))
        assert config.coordinator.max_merge_items == 3
        assert config.collection.location.name == "Ho Chi Minh City"
        assert config.collection.news_feeds == []

    @pytest.mark.parametrize(
        "section",
        [
            "max_merge_items: 0",
            "min_category_merge_count: 0",
            "recent_items_scan_limit: -5",
            "cooldown_minutes: -1",
            "idle_poll_minutes: 0",
            "max_used_ids: 0",
        ],
    )
    def test_rejects_out_of_range_coordinator_values(self, tmp_path, section) -> None:
        path = tmp_path / "config.yml"
        path.write_text(f"coordinator:\n  {section}\n")
        with pytest.raises(ValidationError):
            load_config(str(path))
