"""Tests for application settings."""

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from dropship_ops.config import Settings, get_settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        """Defaults match the standard pricing rules."""
        monkeypatch.delenv("MARKUP_PERCENT", raising=False)
        settings = Settings(_env_file=None)

        assert settings.database_url.startswith("sqlite+aiosqlite")
        assert settings.api_prefix == "/api"
        assert settings.markup_percent == Decimal("70")
        assert settings.min_margin_percent == 30.0
        assert settings.grace_period_days == 7.0
        assert set(settings.competitor_ranges) == {"amazon", "costco", "ebay", "sams"}

    def test_env_overrides(self, monkeypatch):
        """Environment variables override defaults (case-insensitive)."""
        monkeypatch.setenv("MARKUP_PERCENT", "85")
        monkeypatch.setenv("min_reviews", "1000")
        monkeypatch.setenv("REQUIRE_PRIME", "false")
        monkeypatch.setenv("GRACE_PERIOD_DAYS", "3.5")

        settings = Settings(_env_file=None)

        assert settings.markup_percent == Decimal("85")
        assert settings.min_reviews == 1000
        assert settings.require_prime is False
        assert settings.grace_period_days == 3.5

    def test_competitor_ranges_from_json(self, monkeypatch):
        """Competitor ranges are read as JSON [min, max] pairs."""
        monkeypatch.setenv(
            "COMPETITOR_RANGES", json.dumps({"amazon": [1.85, 1.90], "target": [1.80, 1.82]})
        )

        settings = Settings(_env_file=None)

        assert settings.competitor_ranges["target"].high == 1.82
        assert settings.competitor_ranges["amazon"].low == 1.85

    def test_get_settings_cached(self):
        """get_settings returns one shared instance."""
        assert get_settings() is get_settings()


class TestPricingConfigFromSettings:
    """Tests for Settings.pricing_config()."""

    def test_builds_pricing_config(self):
        """Every knob flows into the pricing config."""
        settings = Settings(
            _env_file=None,
            min_price=Decimal("5"),
            max_price=Decimal("30"),
            max_acceptable_rank=50_000,
            markup_percent=Decimal("60"),
            min_margin_percent=25.0,
            grace_period_days=2,
            trend_threshold_percent=15.0,
        )

        config = settings.pricing_config()

        assert config.criteria.min_price == Decimal("5")
        assert config.criteria.max_price == Decimal("30")
        assert config.demand.max_acceptable_rank == 50_000
        assert config.demand.trend_threshold_percent == 15.0
        assert config.markup_percent == Decimal("60")
        assert config.margin.min_margin_percent == 25.0
        assert config.margin.grace_period == timedelta(days=2)

    def test_invalid_settings_rejected(self):
        """Inconsistent knobs fail when the pricing config is built."""
        settings = Settings(_env_file=None, min_price=Decimal("40"), max_price=Decimal("20"))

        with pytest.raises(ValidationError):
            settings.pricing_config()
