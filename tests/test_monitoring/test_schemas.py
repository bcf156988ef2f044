"""Tests for monitoring config models."""

import pydantic
import pytest

from newsflow.monitoring.schemas import MonitoringConfig, MonitoringConfigCreate


class TestMonitoringConfig:
    def test_lifts_article_limit_from_settings(self, make_monitoring):
        assert make_monitoring(settings={"articles_count": 12}).article_limit == 12

    def test_default_article_limit(self, make_monitoring):
        assert make_monitoring(settings=None).article_limit == 5

    def test_source_alias_and_int_ids(self):
        config = MonitoringConfig.model_validate({"id": 7, "source_id": 12, "site_id": 3})

        assert config.news_source_id == "12"
        assert config.site_id == "3"

    def test_keywords_from_comma_string(self, make_monitoring):
        config = make_monitoring(keywords_filter="chips, AI ,,")

        assert config.keywords_filter == ["chips", "AI"]

    def test_matches_keywords(self, make_monitoring):
        config = make_monitoring(keywords_filter=["nvidia"])

        assert config.matches_keywords("NVIDIA beats estimates", None)
        assert not config.matches_keywords("Weather today", "sunny")
        assert make_monitoring().matches_keywords("anything")

    def test_publish_categories(self, make_monitoring):
        assert make_monitoring(categories=["a", "b"], target_category="c").publish_categories == ["a", "b"]
        assert make_monitoring(target_category="c").publish_categories == ["c"]
        assert make_monitoring().publish_categories == []


class TestMonitoringConfigCreate:
    def test_unknown_frequency_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            MonitoringConfigCreate(news_source_id="12", site_id="3", frequency="monthly")

    def test_to_payload_nests_settings(self):
        create = MonitoringConfigCreate(news_source_id="12", site_id="3", frequency="daily")

        payload = create.to_payload(interval=1440, article_limit=8)

        assert payload["check_interval_minutes"] == 1440
        assert payload["settings"] == {"articles_count": 8, "frequency": "daily"}
        assert "frequency" not in payload
