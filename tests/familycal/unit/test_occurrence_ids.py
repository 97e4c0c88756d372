"""Tests for occurrence identity and ISO helpers."""

from datetime import datetime

import pytest

from familycal.occurrence_ids import make_occurrence_id, parse_iso, serialize_iso, split_occurrence_id

pytestmark = pytest.mark.unit


def test_occurrence_id_uses_milliseconds_since_epoch():
    assert make_occurrence_id("abc", datetime(1970, 1, 1, 0, 0, 1)) == "abc-1000"
    assert make_occurrence_id("abc", datetime(2024, 1, 1)) == "abc-1704067200000"


def test_occurrence_id_is_stable_and_distinct():
    start = datetime(2024, 5, 6, 7, 30)

    assert make_occurrence_id("t1", start) == make_occurrence_id("t1", start)
    assert make_occurrence_id("t1", start) != make_occurrence_id("t2", start)
    assert make_occurrence_id("t1", start) != make_occurrence_id("t1", datetime(2024, 5, 13, 7, 30))


@pytest.mark.parametrize(
    "template_id,start",
    [
        ("9f0c2a", datetime(2024, 5, 6, 7, 30)),
        ("with-dashes-in-id", datetime(2031, 12, 31, 23, 59)),
        ("old", datetime(1965, 3, 1, 12, 0)),
    ],
)
def test_split_recovers_template_and_start(template_id, start):
    assert split_occurrence_id(make_occurrence_id(template_id, start)) == (template_id, start)


@pytest.mark.parametrize("bad", ["", "plainid", "abc-", "-123", "abc-12x"])
def test_split_rejects_foreign_ids(bad):
    with pytest.raises(ValueError):
        split_occurrence_id(bad)


def test_aware_start_is_rejected():
    from datetime import timezone

    with pytest.raises(ValueError):
        make_occurrence_id("abc", datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_parse_iso_accepts_dates_and_datetimes():
    assert parse_iso("2024-01-15") == datetime(2024, 1, 15)
    assert parse_iso(" 2024-01-15T09:30 ") == datetime(2024, 1, 15, 9, 30)


def test_parse_iso_rejects_offsets_and_garbage():
    with pytest.raises(ValueError):
        parse_iso("2024-01-15T09:30:00+01:00")
    with pytest.raises(ValueError):
        parse_iso("next tuesday")


def test_serialize_iso():
    assert serialize_iso(None) is None
    assert serialize_iso(datetime(2024, 1, 15, 9, 30)) == "2024-01-15T09:30:00"
