from __future__ import annotations

import logging
import math

import pytest

from movekit.utils import (
    format_with_unit,
    pick_unit_area,
    pick_unit_distance,
    pick_unit_seconds,
    pick_unit_speed,
    setup_logging,
)
from movekit.utils import settings


def test_pick_unit_distance():
    assert pick_unit_distance([10, 200, 900]) == ("m", 1.0)
    assert pick_unit_distance([1500, 2500, 4000]) == ("km", 1000.0)


def test_pick_unit_speed_switches_to_kmh():
    assert pick_unit_speed([0.05, 0.1]) == ("m/s", 1.0)
    name, scale = pick_unit_speed([2.0, 3.0])
    assert name == "km/h"
    assert scale == pytest.approx(1 / 3.6)


def test_pick_unit_area():
    assert pick_unit_area([500])[0] == "m²"
    assert pick_unit_area([5e5])[0] == "ha"
    assert pick_unit_area([5e7])[0] == "km²"


def test_pick_unit_seconds_ignores_non_finite():
    assert pick_unit_seconds([30, math.inf, math.nan]) == ("second", 1.0)
    assert pick_unit_seconds([7200])[0] == "hour"
    assert pick_unit_seconds([86400 * 3])[0] == "day"
    assert pick_unit_seconds([86400 * 800])[0] == "year"


def test_format_with_unit():
    assert format_with_unit(3600, "seconds") == "1.00 hour"
    assert format_with_unit(7200, "seconds") == "2.00 hours"
    assert format_with_unit(1500, "distance") == "1.50 km"
    assert format_with_unit(5e5, "area") == "50.00 ha"
    assert format_with_unit(math.nan, "distance") == "NA"
    assert format_with_unit(None, "speed") == "NA"


def test_format_with_unit_rejects_unknown_kind():
    with pytest.raises(ValueError):
        format_with_unit(1.0, "volume")


def test_settings_helpers(monkeypatch):
    monkeypatch.setenv("MOVEKIT_TEST_FLAG", "yes")
    monkeypatch.setenv("MOVEKIT_TEST_BLANK", "  ")
    assert settings.as_bool(settings.from_env("MOVEKIT_TEST_FLAG")) is True
    assert settings.from_env("MOVEKIT_TEST_BLANK", "fallback") == "fallback"
    assert settings.as_bool(None, default=True) is True
    assert settings.as_int("4", None) == 4
    assert settings.as_int("four", 2) == 2
    assert settings.as_float("2.5", 0.0) == 2.5
    assert settings.as_float("x", 10.0) == 10.0


def test_setup_logging_replaces_handlers(tmp_path):
    logger = setup_logging(log_dir=tmp_path, level="DEBUG")
    logger = setup_logging(log_dir=tmp_path, level="DEBUG")

    ours = [h for h in logger.handlers if getattr(h, "_movekit", False)]
    assert len(ours) == 2
    assert logger.level == logging.DEBUG

    logging.getLogger("movekit.tests").info("hello")
    for handler in ours:
        handler.flush()
    assert "hello" in (tmp_path / "movekit.log").read_text()

    setup_logging(log_dir=None, level="WARNING", console=False)
    assert not logger.handlers
    logger.propagate = True
