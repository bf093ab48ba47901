from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta, timezone

from pickhub.time_utils import current_month_utc, iso_z, utc_now, utc_now_str


def test_utc_now_is_utc_without_microseconds() -> None:
    now = utc_now()

    assert now.tzinfo == UTC
    assert now.microsecond == 0


def test_utc_now_str_uses_z_suffix() -> None:
    value = utc_now_str()

    assert value.endswith("Z")
    assert "+00:00" not in value


def test_iso_z_normalizes_naive_datetime() -> None:
    value = datetime(2025, 9, 7, 17, 0, 0)

    assert iso_z(value) == "2025-09-07T17:00:00Z"


def test_iso_z_normalizes_non_utc_datetime() -> None:
    eastern = datetime(2025, 9, 7, 13, 0, 0, tzinfo=timezone(timedelta(hours=-4)))

    assert iso_z(eastern) == "2025-09-07T17:00:00Z"


def test_current_month_utc_format() -> None:
    assert re.fullmatch(r"\d{4}-\d{2}", current_month_utc())
