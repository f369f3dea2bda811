from datetime import datetime, timezone

import pytest

from listseerr.core.errors import InvalidCronExpressionError
from listseerr.services.cron import CronExpression

UTC = timezone.utc


def _utc(*args):
    return datetime(*args, tzinfo=UTC)


def test_next_after_is_strictly_later():
    cron = CronExpression("*/15 * * * *")
    assert cron.next_after(_utc(2025, 1, 1, 10, 15)) == _utc(2025, 1, 1, 10, 30)
    assert cron.next_after(_utc(2025, 1, 1, 10, 14, 59)) == _utc(2025, 1, 1, 10, 15)


def test_daily_rolls_over_to_next_day():
    cron = CronExpression("0 3 * * *")
    assert cron.next_after(_utc(2025, 1, 1, 3, 0)) == _utc(2025, 1, 2, 3, 0)
    assert cron.next_after(_utc(2024, 12, 31, 23, 59)) == _utc(2025, 1, 1, 3, 0)


def test_naive_datetimes_are_read_as_utc():
    cron = CronExpression("30 12 * * *")
    assert cron.next_after(datetime(2025, 6, 1, 12, 0)) == _utc(2025, 6, 1, 12, 30)


def test_day_of_week_uses_sunday_as_zero():
    # 2025-01-01 is a Wednesday
    assert CronExpression("0 9 * * 1").next_after(_utc(2025, 1, 1)) == _utc(2025, 1, 6, 9)
    assert CronExpression("0 9 * * 0").next_after(_utc(2025, 1, 1)) == _utc(2025, 1, 5, 9)
    assert CronExpression("0 9 * * sat").next_after(_utc(2025, 1, 1)) == _utc(2025, 1, 4, 9)


def test_seven_also_means_sunday():
    after = _utc(2025, 1, 1)
    assert CronExpression("0 0 * * 7").next_after(after) == _utc(2025, 1, 5)
    assert CronExpression("0 0 * * 7").days_of_week == CronExpression("0 0 * * 0").days_of_week == {0}

    weekend = CronExpression("0 0 * * 5-7")
    assert weekend.days_of_week == {5, 6, 0}
    assert weekend.next_after(after) == _utc(2025, 1, 3)
    assert weekend.next_after(_utc(2025, 1, 4)) == _utc(2025, 1, 5)
    assert weekend.next_after(_utc(2025, 1, 5)) == _utc(2025, 1, 10)


def test_day_of_month_or_day_of_week_when_both_restricted():
    after = _utc(2025, 1, 1)
    assert CronExpression("0 0 13 * *").next_after(after) == _utc(2025, 1, 13)
    assert CronExpression("0 0 * * 5").next_after(after) == _utc(2025, 1, 3)
    assert CronExpression("0 0 13 * 5").next_after(after) == _utc(2025, 1, 3)
    assert CronExpression("0 0 13 * 5").next_after(_utc(2025, 1, 11)) == _utc(2025, 1, 13)


def test_ranges_lists_and_months():
    cron = CronExpression("0 8-10/2,17 * 3 1-5")
    # 2025-03-01 is a Saturday, first weekday match is Monday the 3rd
    assert cron.next_after(_utc(2025, 1, 1)) == _utc(2025, 3, 3, 8)
    assert cron.next_after(_utc(2025, 3, 3, 8)) == _utc(2025, 3, 3, 10)
    assert cron.next_after(_utc(2025, 3, 3, 10)) == _utc(2025, 3, 3, 17)


def test_leap_day_is_found():
    assert CronExpression("0 0 29 2 *").next_after(_utc(2025, 1, 1)) == _utc(2028, 2, 29)


def test_evaluated_in_configured_timezone():
    cron = CronExpression("0 9 * * *", "Europe/Paris")
    result = cron.next_after(_utc(2025, 1, 15, 7, 0))
    assert result.tzinfo is not None
    assert result.astimezone(UTC) == _utc(2025, 1, 15, 8, 0)
    # Summer time shifts the UTC instant
    assert cron.next_after(_utc(2025, 7, 15, 7, 30)).astimezone(UTC) == _utc(2025, 7, 16, 7, 0)


def test_nonexistent_local_time_is_skipped():
    # 02:30 does not exist in New York on 2025-03-09
    cron = CronExpression("30 2 * * *", "America/New_York")
    result = cron.next_after(_utc(2025, 3, 9, 6, 0))
    assert result.astimezone(UTC) == _utc(2025, 3, 10, 6, 30)


@pytest.mark.parametrize("expression", [
    "",
    "* * * *",
    "* * * * * *",
    "60 * * * *",
    "0 24 * * *",
    "0 0 32 * *",
    "0 0 * 13 *",
    "0 0 * * 8",
    "abc * * * *",
])
def test_invalid_expressions(expression):
    with pytest.raises(InvalidCronExpressionError):
        CronExpression(expression)


@pytest.mark.parametrize("expression", ["0 0 30 2 *", "0 0 31 4 *", "0 0 31 2,4,6,9,11 *"])
def test_expressions_that_never_fire_are_rejected(expression):
    with pytest.raises(InvalidCronExpressionError, match="never fires"):
        CronExpression(expression)


def test_unknown_timezone_is_rejected():
    with pytest.raises(InvalidCronExpressionError, match="timezone"):
        CronExpression("0 0 * * *", "Mars/Olympus_Mons")
