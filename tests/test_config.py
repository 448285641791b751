import pytest
from pydantic import ValidationError

from fieldroute.config import Settings


def test_defaults():
    config = Settings()

    assert config.osrm_max_attempts == 3
    assert config.osrm_max_locations_per_request == 100
    assert config.fallback_detour_factor == 1.3
    assert config.default_start_time == "08:00"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FIELDROUTE_OSRM_BASE_URL", "http://osrm.internal:5000")
    monkeypatch.setenv("FIELDROUTE_OSRM_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("FIELDROUTE_DEFAULT_START_TIME", "7:30")

    config = Settings()

    assert config.osrm_base_url == "http://osrm.internal:5000"
    assert config.osrm_max_attempts == 5
    assert config.default_start_time == "07:30"


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        Settings(default_start_time="25:61")
    with pytest.raises(ValidationError):
        Settings(osrm_profile="walking")
    with pytest.raises(ValidationError):
        Settings(fallback_detour_factor=0.5)
