import math

import pytest

from contest_engine.config import settings
from contest_engine.errors import InvalidReading
from contest_engine.scoring.normalizer import (
    PRECIP_RANGE_DESCRIPTIONS,
    bucket_from_range_table,
    bucket_from_thresholds,
    normalize,
    precip_bucket,
    precip_range_choices,
    precip_range_description,
    round_half_away,
)


def _raw(**overrides):
    raw = {"MaxTemp": 85.4, "MinTemp": 72.6, "MaxGust": 18.75, "SumPrec": 0.33}
    raw.update(overrides)
    return raw


@pytest.mark.parametrize("value,expected", [
    (85.4, 85),
    (85.5, 86),
    (86.5, 87),  # banker's rounding would give 86
    (84.49, 84),
    (0.5, 1),
    (-0.5, -1),
    (-85.5, -86),
    (-85.4, -85),
    (74.0, 74),
    (90, 90),
])
def test_round_half_away(value, expected):
    assert round_half_away(value) == expected


@pytest.mark.parametrize("inches,expected", [
    (0.0, 1),
    (0.05, 1),
    (0.10, 1),
    (0.11, 2),
    (0.25, 2),
    (0.26, 3),
    (0.50, 3),
    (0.51, 4),
    (1.00, 4),
    (1.01, 5),
    (1.50, 5),
    (1.51, 6),
    (2.50, 6),
    (2.51, 7),
    (6.0, 7),
])
def test_bucket_from_range_table(inches, expected):
    assert bucket_from_range_table(inches) == expected


@pytest.mark.parametrize("inches,expected", [
    (0.0, 1),
    (0.01, 2),
    (0.0999, 2),
    (0.10, 3),
    (0.2499, 3),
    (0.25, 4),
    (0.4999, 4),
    (0.50, 5),
    (0.9999, 5),
    (1.00, 6),
    (1.9999, 6),
    (2.00, 7),
    (3.5, 7),
])
def test_bucket_from_thresholds(inches, expected):
    assert bucket_from_thresholds(inches) == expected


def test_range_table_agrees_with_display_descriptions():
    for bucket, desc in PRECIP_RANGE_DESCRIPTIONS.items():
        assert bucket_from_range_table(desc["min"]) == bucket
        if desc["max"] is not None:
            assert bucket_from_range_table(desc["max"]) == bucket


def test_precip_bucket_follows_configured_rule(monkeypatch):
    assert precip_bucket(0.05) == 1
    monkeypatch.setattr(settings, "precip_bucket_rule", "thresholds")
    assert precip_bucket(0.05) == 2
    assert precip_bucket(0.05, rule="range_table") == 1


def test_precip_bucket_unknown_rule():
    with pytest.raises(ValueError):
        precip_bucket(0.2, rule="nearest")


def test_precip_range_description_labels_and_fallback():
    assert precip_range_description(1)["label"] == '0.00" - 0.10"'
    assert precip_range_description(7)["label"] == '2.51" or more'
    assert precip_range_description(42) == precip_range_description(1)
    choices = precip_range_choices()
    assert [c["value"] for c in choices] == [1, 2, 3, 4, 5, 6, 7]
    assert choices[3]["label"] == '0.51" - 1.00"'


def test_normalize_rounds_temps_and_keeps_raw_precision():
    reading = normalize(_raw())
    assert reading.max_temp_raw == 85.4
    assert reading.max_temp_rounded == 85
    assert reading.min_temp_rounded == 73
    assert reading.wind_gust_max == 18.75
    assert reading.precip_total == 0.33
    assert reading.precip_range == 3


def test_normalize_half_boundary():
    assert normalize(_raw(MaxTemp=85.5)).max_temp_rounded == 86


def test_normalize_accepts_integers():
    reading = normalize(_raw(MaxTemp=90, SumPrec=0))
    assert reading.max_temp_rounded == 90
    assert reading.precip_range == 1


@pytest.mark.parametrize("field", ["MaxTemp", "MinTemp", "MaxGust", "SumPrec"])
@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf, "85", None, True, 10**400])
def test_normalize_rejects_non_finite_or_non_numeric(field, bad):
    with pytest.raises(InvalidReading) as exc_info:
        normalize(_raw(**{field: bad}))
    assert exc_info.value.field == field


def test_normalize_rejects_missing_field():
    raw = _raw()
    del raw["MaxGust"]
    with pytest.raises(InvalidReading):
        normalize(raw)
