import json
from datetime import date

import pytest

from contest_engine.db import schedule_station
from contest_engine.errors import NoStationScheduled
from contest_engine.schedule import (
    DateOverrideLookup,
    StationResolver,
    WeeklyScheduleLookup,
    default_resolver,
)


class _StaticLookup:
    def __init__(self, name, mapping):
        self.name = name
        self.mapping = mapping
        self.calls = []

    def lookup(self, target_date):
        self.calls.append(target_date)
        return self.mapping.get(target_date)


def test_first_lookup_that_resolves_wins():
    day = date(2026, 10, 21)
    first = _StaticLookup("first", {day: "ICAYEY43"})
    second = _StaticLookup("second", {day: "IMAYAG30"})

    assert StationResolver([first, second]).resolve(day) == "ICAYEY43"
    assert second.calls == []


def test_falls_through_to_later_lookup():
    day = date(2026, 10, 21)
    first = _StaticLookup("first", {})
    second = _StaticLookup("second", {day: "IMAYAG30"})

    assert StationResolver([first, second]).resolve(day) == "IMAYAG30"
    assert first.calls == [day]


def test_no_lookup_resolves():
    with pytest.raises(NoStationScheduled) as exc_info:
        StationResolver([_StaticLookup("empty", {})]).resolve(date(2026, 10, 21))
    assert exc_info.value.target_date == date(2026, 10, 21)


def test_date_override_file(tmp_path):
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"2026-10-22": "ICABOR73"}), encoding="utf-8")

    lookup = DateOverrideLookup.from_file(path)
    assert lookup.lookup(date(2026, 10, 22)) == "ICABOR73"
    assert lookup.lookup(date(2026, 10, 23)) is None


def test_missing_override_file_means_no_overrides(tmp_path):
    lookup = DateOverrideLookup.from_file(tmp_path / "nope.json")
    assert lookup.overrides == {}


def test_weekly_schedule_lookup_uses_week_start(db):
    schedule_station("IMAYAG30", date(2026, 10, 19), db=db)
    lookup = WeeklyScheduleLookup(db)

    for day in range(19, 26):
        assert lookup.lookup(date(2026, 10, day)) == "IMAYAG30"
    assert lookup.lookup(date(2026, 10, 26)) is None


def test_default_resolver_prefers_date_override(db, tmp_path):
    schedule_station("IMAYAG30", date(2026, 10, 19), db=db)
    (tmp_path / "overrides.json").write_text(json.dumps({"2026-10-22": "ICABOR73"}), encoding="utf-8")

    resolver = default_resolver(db)
    assert resolver.resolve(date(2026, 10, 22)) == "ICABOR73"
    assert resolver.resolve(date(2026, 10, 23)) == "IMAYAG30"
    with pytest.raises(NoStationScheduled):
        resolver.resolve(date(2026, 11, 2))


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", b'{"2026-10-22": "\xff"}'])
def test_unreadable_override_file_means_no_overrides(tmp_path, content):
    path = tmp_path / "overrides.json"
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")

    assert DateOverrideLookup.from_file(path).overrides == {}


def test_bad_override_entries_are_dropped(tmp_path):
    path = tmp_path / "overrides.json"
    path.write_text(
        json.dumps({
            "2026-10-22": "ICABOR73",
            "22/10/2026": "IMAYAG30",
            "2026-10-23": 42,
            "2026-10-24": "KNOPE99",
        }),
        encoding="utf-8",
    )

    lookup = DateOverrideLookup.from_file(path, known_stations={"ICABOR73", "IMAYAG30"})
    assert lookup.overrides == {date(2026, 10, 22): "ICABOR73"}


def test_default_resolver_survives_malformed_override_file(db, tmp_path):
    schedule_station("IMAYAG30", date(2026, 10, 19), db=db)
    (tmp_path / "overrides.json").write_text("{oops", encoding="utf-8")

    assert default_resolver(db).resolve(date(2026, 10, 22)) == "IMAYAG30"


def test_default_resolver_ignores_override_for_unknown_station(db, tmp_path):
    schedule_station("IMAYAG30", date(2026, 10, 19), db=db)
    (tmp_path / "overrides.json").write_text(json.dumps({"2026-10-22": "KNOPE99"}), encoding="utf-8")

    assert default_resolver(db).resolve(date(2026, 10, 22)) == "IMAYAG30"
