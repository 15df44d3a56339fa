"""Tests for analytics configuration."""
from unittest.mock import patch

import pytest

from matelytics.services.analytics_service.config import AnalyticsConfig


class TestAnalyticsConfig:

    def test_defaults(self):
        config = AnalyticsConfig()

        assert config.k_anonymity_threshold == 5
        assert config.reply_weight == 3
        assert config.unspecified_label == "unspecified"
        assert config.default_top_notes is None

    def test_from_env(self):
        with patch.dict("os.environ", {
            "K_ANONYMITY_THRESHOLD": "10",
            "REPLY_WEIGHT": "4",
            "UNSPECIFIED_LABEL": "sin dato",
            "DEFAULT_TOP_NOTES": "5",
        }):
            config = AnalyticsConfig.from_env()

        assert config.k_anonymity_threshold == 10
        assert config.reply_weight == 4
        assert config.unspecified_label == "sin dato"
        assert config.default_top_notes == 5

    def test_from_env_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            config = AnalyticsConfig.from_env()

        assert config == AnalyticsConfig()

    @pytest.mark.parametrize("kwargs", [
        {"k_anonymity_threshold": 0},
        {"reply_weight": 1},
        {"reply_weight": 2.5},
        {"unspecified_label": ""},
        {"default_top_notes": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            AnalyticsConfig(**kwargs)

    def test_config_is_immutable(self):
        config = AnalyticsConfig()

        with pytest.raises(AttributeError):
            config.k_anonymity_threshold = 1
