"""Station reading normalization: rounded temperatures and precip buckets.

Two precipitation bucket tables coexist. The range table (inclusive upper
edges) is the one the display descriptions are written against and the
default for scoring. The threshold table separates dry days from trace
amounts and has different upper buckets. Which one is canonical is still an
open product question, so both are kept and the rule is a setting.
"""

import math
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from contest_engine.config import settings
from contest_engine.errors import InvalidReading

RAW_FIELDS = ("MaxTemp", "MinTemp", "MaxGust", "SumPrec")

# bucket -> upper edge (inclusive), last bucket open-ended
_RANGE_TABLE_EDGES = [(1, 0.10), (2, 0.25), (3, 0.50), (4, 1.00), (5, 1.50), (6, 2.50)]

# bucket -> upper edge (exclusive), bucket 1 is exactly zero
_THRESHOLD_EDGES = [(2, 0.10), (3, 0.25), (4, 0.50), (5, 1.00), (6, 2.00)]

PRECIP_RANGE_DESCRIPTIONS = {
    1: {"min": 0.00, "max": 0.10, "label": '0.00" - 0.10"'},
    2: {"min": 0.11, "max": 0.25, "label": '0.11" - 0.25"'},
    3: {"min": 0.26, "max": 0.50, "label": '0.26" - 0.50"'},
    4: {"min": 0.51, "max": 1.00, "label": '0.51" - 1.00"'},
    5: {"min": 1.01, "max": 1.50, "label": '1.01" - 1.50"'},
    6: {"min": 1.51, "max": 2.50, "label": '1.51" - 2.50"'},
    7: {"min": 2.51, "max": None, "label": '2.51" or more'},
}


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (85.5 -> 86)."""
    return int(Decimal(repr(float(value))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bucket_from_range_table(inches: float) -> int:
    for bucket, upper in _RANGE_TABLE_EDGES:
        if inches <= upper:
            return bucket
    return 7


def bucket_from_thresholds(inches: float) -> int:
    if inches <= 0:
        return 1
    for bucket, upper in _THRESHOLD_EDGES:
        if inches < upper:
            return bucket
    return 7


_BUCKET_RULES = {
    "range_table": bucket_from_range_table,
    "thresholds": bucket_from_thresholds,
}


def precip_bucket(inches: float, rule: str | None = None) -> int:
    rule = rule or settings.precip_bucket_rule
    try:
        return _BUCKET_RULES[rule](inches)
    except KeyError:
        raise ValueError(f"Unknown precipitation bucket rule: {rule}") from None


def precip_range_description(bucket: int) -> dict:
    return PRECIP_RANGE_DESCRIPTIONS.get(bucket, PRECIP_RANGE_DESCRIPTIONS[1])


def precip_range_choices() -> list[dict]:
    return [{"value": bucket, **desc} for bucket, desc in PRECIP_RANGE_DESCRIPTIONS.items()]


@dataclass(frozen=True)
class NormalizedReading:
    max_temp_raw: float
    max_temp_rounded: int
    min_temp_raw: float
    min_temp_rounded: int
    wind_gust_max: float
    precip_total: float
    precip_range: int

    def to_dict(self) -> dict:
        return asdict(self)


def _finite_number(raw: Mapping, field: str) -> float:
    if field not in raw:
        raise InvalidReading(field)
    value = raw[field]
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidReading(field, value)
    try:
        number = float(value)
    except OverflowError:
        raise InvalidReading(field, value) from None
    if not math.isfinite(number):
        raise InvalidReading(field, value)
    return number


def normalize(raw: Mapping, rule: str | None = None) -> NormalizedReading:
    """Convert a raw station record into the values forecasts are scored on.

    Args:
        raw: Mapping with MaxTemp, MinTemp, MaxGust and SumPrec.
        rule: Precipitation bucket rule, defaults to the configured one.

    Raises:
        InvalidReading: a field is missing, non-numeric or not finite.
    """
    max_temp, min_temp, gust, precip = (_finite_number(raw, f) for f in RAW_FIELDS)
    return NormalizedReading(
        max_temp_raw=max_temp,
        max_temp_rounded=round_half_away(max_temp),
        min_temp_raw=min_temp,
        min_temp_rounded=round_half_away(min_temp),
        wind_gust_max=gust,
        precip_total=precip,
        precip_range=precip_bucket(precip, rule),
    )
