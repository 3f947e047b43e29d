import re
from datetime import datetime, timedelta, timezone

import pytest

from meshcore.log_format import format_date

TIME_PATTERN = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}Z"


@pytest.mark.parametrize(
    "moment, year",
    [
        (datetime(1, 4, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "0001"),
        (datetime(1989, 2, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "1989"),
        (datetime(2017, 1, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "2017"),
        (datetime(2083, 3, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "2083"),
        (datetime(2573, 6, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "2573"),
        (datetime(9999, 5, 1, 1, 1, 1, 0, tzinfo=timezone.utc), "9999"),
    ],
)
def test_timestamp_proper_year(moment, year):
    assert format_date(moment).startswith(year)


@pytest.mark.parametrize(
    "moment, micros",
    [
        (datetime(2017, 4, 1, 1, 1, 1, 1, tzinfo=timezone.utc), "1"),
        (datetime(1989, 2, 1, 1, 1, 1, 99, tzinfo=timezone.utc), "99"),
        (datetime(2017, 1, 1, 1, 1, 1, 999, tzinfo=timezone.utc), "999"),
        (datetime(2083, 3, 1, 1, 1, 1, 9999, tzinfo=timezone.utc), "9999"),
        (datetime(2083, 3, 1, 1, 1, 1, 99999, tzinfo=timezone.utc), "99999"),
        (datetime(2083, 3, 1, 1, 1, 1, 999999, tzinfo=timezone.utc), "999999"),
    ],
)
def test_timestamp_proper_micros(moment, micros):
    assert format_date(moment).endswith(micros + "Z")


def test_full_value():
    moment = datetime(2017, 4, 1, 1, 2, 3, 4005, tzinfo=timezone.utc)
    assert format_date(moment) == "2017-04-01T01:02:03.004005Z"


def test_matches_pattern():
    moment = datetime(2020, 12, 31, 23, 59, 59, 123456, tzinfo=timezone.utc)
    text = format_date(moment)
    assert text == "2020-12-31T23:59:59.123456Z"
    assert bool(re.fullmatch(TIME_PATTERN, text)) is True


def test_converts_to_utc():
    offset = timezone(timedelta(hours=2))
    moment = datetime(2020, 1, 1, 1, 30, 0, 0, tzinfo=offset)
    assert format_date(moment) == "2019-12-31T23:30:00.000000Z"


def test_naive_treated_as_utc():
    assert format_date(datetime(2001, 9, 8, 7, 6, 5, 43)) == "2001-09-08T07:06:05.000043Z"