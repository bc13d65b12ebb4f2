"""Unit tests for configuration loading and the immutable service config."""

import dataclasses

import pytest

from utils.config import (
    DEFAULT_MODEL_VERSION,
    ServiceConfig,
    load_config,
    validate_config,
)

pytestmark = pytest.mark.unit


def test_load_config_reads_environment(monkeypatch):
    monkeypatch.setenv("REPLICATE_API_TOKEN", "r8_env")
    monkeypatch.setenv("REPLICATE_FALLBACK_VERSIONS", "a/b:1, c/d:2 ,")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("MAX_POLL_ATTEMPTS", "10")
    monkeypatch.setenv("INLINE_REMOTE_IMAGES", "TRUE")

    config = load_config()

    assert config["replicate_api_token"] == "r8_env"
    assert config["fallback_versions"] == ["a/b:1", "c/d:2"]
    assert config["poll_interval"] == 0.5
    assert config["max_poll_attempts"] == 10
    assert config["inline_remote_images"] is True


def test_load_config_defaults(monkeypatch):
    for name in (
        "REPLICATE_MODEL_VERSION",
        "POLL_INTERVAL_SECONDS",
        "MAX_POLL_ATTEMPTS",
        "GUIDANCE_MIN",
        "GUIDANCE_MAX",
        "DEFAULT_STRENGTH",
    ):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config["model_version"] == DEFAULT_MODEL_VERSION
    assert config["poll_interval"] == 1.5
    assert config["max_poll_attempts"] == 80
    assert config["guidance_min"] == 3.0
    assert config["guidance_max"] == 8.0
    assert config["default_strength"] == 0.35


def test_validate_config_reports_problems():
    errors = validate_config(
        {
            "replicate_api_token": None,
            "model_version": "m",
            "poll_interval": 0,
            "max_poll_attempts": 0,
            "guidance_min": 9,
            "guidance_max": 3,
            "default_strength": 1.5,
        }
    )

    assert any("REPLICATE_API_TOKEN" in e for e in errors)
    assert any("POLL_INTERVAL_SECONDS" in e for e in errors)
    assert any("MAX_POLL_ATTEMPTS" in e for e in errors)
    assert any("GUIDANCE_MIN" in e for e in errors)
    assert any("DEFAULT_STRENGTH" in e for e in errors)


def test_validate_config_accepts_good_config():
    config = {
        "replicate_api_token": "r8",
        "model_version": "m",
        "poll_interval": 1.5,
        "max_poll_attempts": 80,
        "guidance_min": 3,
        "guidance_max": 8,
        "default_strength": 0.35,
    }
    assert validate_config(config) == []


def test_from_mapping_freezes_config():
    config = ServiceConfig.from_mapping(
        {
            "replicate_api_token": "",
            "api_base": "https://api.replicate.com/v1/",
            "fallback_versions": ["x/y:1"],
        }
    )

    assert config.replicate_api_token is None
    assert config.api_base == "https://api.replicate.com/v1"
    assert config.fallback_versions == ("x/y:1",)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.model_version = "other"


def test_model_versions_primary_first_and_deduplicated():
    config = ServiceConfig(model_version="a:1", fallback_versions=("b:2", "a:1", "c:3"))
    assert config.model_versions == ("a:1", "b:2", "c:3")


class TestGuidanceMapping:
    """Tests for the strength to guidance scale map."""

    def test_endpoints(self):
        config = ServiceConfig()
        assert config.guidance_for_strength(0.0) == pytest.approx(3.0)
        assert config.guidance_for_strength(1.0) == pytest.approx(8.0)

    @pytest.mark.parametrize("strength,expected", [(-2.0, 3.0), (1.7, 8.0)])
    def test_out_of_range_strength_is_clamped(self, strength, expected):
        assert ServiceConfig().guidance_for_strength(strength) == pytest.approx(expected)

    def test_monotonic_non_decreasing(self):
        config = ServiceConfig()
        values = [config.guidance_for_strength(i / 20) for i in range(21)]
        assert values == sorted(values)

    def test_inverted_range_stays_monotonic(self):
        config = ServiceConfig(guidance_min=8.0, guidance_max=3.0)
        values = [config.guidance_for_strength(i / 10) for i in range(11)]
        assert values == sorted(values)
        assert values[0] == pytest.approx(3.0)
        assert values[-1] == pytest.approx(8.0)

    def test_from_mapping_swaps_inverted_range(self):
        config = ServiceConfig.from_mapping({"guidance_min": 9, "guidance_max": 2})
        assert (config.guidance_min, config.guidance_max) == (2.0, 9.0)
