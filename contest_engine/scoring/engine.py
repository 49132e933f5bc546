"""Forecast scoring: four 0-5 sub-scores plus a perfect-forecast bonus.

Max/min temperature and the precipitation bucket use the standard ladder on
the absolute difference. Wind gust uses wider bands. A forecast that is
perfect on all four axes earns 5 extra points, so totals range 0-25.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from contest_engine.scoring.normalizer import round_half_away

STANDARD_LADDER = {0: 5, 1: 4, 2: 3, 3: 2, 4: 1}

# (max diff inclusive, points)
WIND_GUST_BANDS = [(0, 5), (2, 4), (5, 3), (9, 2), (14, 1)]

PERFECT_SCORE = 5
PERFECT_BONUS = 5


def ladder_score(diff: int) -> int:
    return STANDARD_LADDER.get(abs(diff), 0)


def max_temp_score(forecast: int, actual: int) -> int:
    return ladder_score(forecast - actual)


def min_temp_score(forecast: int, actual: int) -> int:
    return ladder_score(forecast - actual)


def precip_score(forecast_range: int, actual_range: int) -> int:
    return ladder_score(forecast_range - actual_range)


def wind_gust_score(forecast: int, actual: float) -> int:
    diff = abs(forecast - round_half_away(actual))
    for max_diff, points in WIND_GUST_BANDS:
        if diff <= max_diff:
            return points
    return 0


@dataclass(frozen=True)
class ScoreResult:
    max_temp_score: int
    min_temp_score: int
    wind_gust_score: int
    precip_score: int
    perfect_bonus: int
    total_score: int
    breakdown: dict = field(default_factory=dict, compare=False)

    @property
    def is_perfect(self) -> bool:
        return self.perfect_bonus > 0

    def to_dict(self) -> dict:
        return {
            "max_temp_score": self.max_temp_score,
            "min_temp_score": self.min_temp_score,
            "wind_gust_score": self.wind_gust_score,
            "precip_score": self.precip_score,
            "perfect_bonus": self.perfect_bonus,
            "total_score": self.total_score,
            "is_perfect": self.is_perfect,
            "breakdown": self.breakdown,
        }


def _value(obj: Any, name: str):
    if isinstance(obj, Mapping):
        return obj[name]
    return getattr(obj, name)


def score(forecast, reading) -> ScoreResult:
    """Score one forecast against the reading for the same station and date.

    forecast needs max_temp, min_temp, wind_gust, precip_range; reading needs
    max_temp_rounded, min_temp_rounded, wind_gust_max, precip_range. Both may
    be mappings or objects. Matching station and date is the caller's job.
    """
    f_max = int(_value(forecast, "max_temp"))
    f_min = int(_value(forecast, "min_temp"))
    f_gust = int(_value(forecast, "wind_gust"))
    f_precip = int(_value(forecast, "precip_range"))

    a_max = int(_value(reading, "max_temp_rounded"))
    a_min = int(_value(reading, "min_temp_rounded"))
    a_gust = round_half_away(float(_value(reading, "wind_gust_max")))
    a_precip = int(_value(reading, "precip_range"))
    precip_inches = _value(reading, "precip_total") if _has(reading, "precip_total") else None

    max_s = max_temp_score(f_max, a_max)
    min_s = min_temp_score(f_min, a_min)
    gust_s = wind_gust_score(f_gust, a_gust)
    precip_s = precip_score(f_precip, a_precip)

    perfect = all(s == PERFECT_SCORE for s in (max_s, min_s, gust_s, precip_s))
    bonus = PERFECT_BONUS if perfect else 0

    breakdown = {
        "max_temp": {"forecast": f_max, "actual": a_max, "diff": abs(f_max - a_max), "score": max_s},
        "min_temp": {"forecast": f_min, "actual": a_min, "diff": abs(f_min - a_min), "score": min_s},
        "wind_gust": {"forecast": f_gust, "actual": a_gust, "diff": abs(f_gust - a_gust), "score": gust_s},
        "precip": {
            "forecast_range": f_precip,
            "actual_range": a_precip,
            "actual_inches": float(precip_inches) if precip_inches is not None else None,
            "range_diff": abs(f_precip - a_precip),
            "score": precip_s,
        },
    }

    return ScoreResult(
        max_temp_score=max_s,
        min_temp_score=min_s,
        wind_gust_score=gust_s,
        precip_score=precip_s,
        perfect_bonus=bonus,
        total_score=max_s + min_s + gust_s + precip_s + bonus,
        breakdown=breakdown,
    )


def _has(obj: Any, name: str) -> bool:
    if isinstance(obj, Mapping):
        return name in obj
    return hasattr(obj, name)
