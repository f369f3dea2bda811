"""
Five-field cron expressions evaluated in an IANA timezone.

Field syntax (ranges, steps, lists and day names) is expanded with
Celery's crontab parser; next fire times are computed here so the scheduler
can run in-process without a beat worker.
"""
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from celery.schedules import ParseException, crontab, crontab_parser

from listseerr.core.errors import InvalidCronExpressionError

# Longest gap between two matching days (Feb 29 on a given weekday) is 28 years
MAX_SEARCH_DAYS = 366 * 28


class CronExpression:
    def __init__(self, expression: str, tz: Optional[str] = "UTC"):
        self.expression = (expression or "").strip()
        fields = self.expression.split()
        if len(fields) != 5:
            raise InvalidCronExpressionError(self.expression, f"expected 5 fields, got {len(fields)}")

        minute, hour, day_of_month, month, day_of_week = fields
        try:
            # 0-7 with both 0 and 7 meaning Sunday; Celery only knows 0-6
            days_of_week = {day % 7 for day in crontab_parser(8).parse(day_of_week)}
            self._crontab = crontab(
                minute=minute,
                hour=hour,
                day_of_month=day_of_month,
                month_of_year=month,
                day_of_week=days_of_week,
            )
        except (ValueError, ParseException) as e:
            raise InvalidCronExpressionError(self.expression, str(e)) from e

        try:
            self.tz = ZoneInfo(tz or "UTC")
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidCronExpressionError(self.expression, f"unknown timezone '{tz}'") from e

        self.minutes = sorted(self._crontab.minute)
        self.hours = sorted(self._crontab.hour)
        self.days_of_month = set(self._crontab.day_of_month)
        self.months = set(self._crontab.month_of_year)
        self.days_of_week = set(self._crontab.day_of_week)  # 0 = Sunday
        self._dom_restricted = day_of_month != "*"
        self._dow_restricted = day_of_week != "*"

        # Fails now for expressions such as "0 0 30 2 *"
        self.next_after(datetime.now(timezone.utc))

    def _day_matches(self, day: date) -> bool:
        if day.month not in self.months:
            return False
        dom_ok = day.day in self.days_of_month
        dow_ok = (day.weekday() + 1) % 7 in self.days_of_week
        if self._dom_restricted and self._dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok

    def _exists(self, candidate: datetime) -> bool:
        """False for wall times skipped by a DST jump."""
        round_trip = candidate.astimezone(timezone.utc).astimezone(self.tz)
        return round_trip.replace(tzinfo=None) == candidate.replace(tzinfo=None)

    def next_after(self, after: datetime) -> datetime:
        """First fire time strictly after `after`, as an aware datetime in the cron timezone."""
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        local = after.astimezone(self.tz)
        start = local.replace(second=0, microsecond=0) + timedelta(minutes=1)

        day = start.date()
        for _ in range(MAX_SEARCH_DAYS):
            if self._day_matches(day):
                for hour in self.hours:
                    if day == start.date() and hour < start.hour:
                        continue
                    for minute in self.minutes:
                        if day == start.date() and hour == start.hour and minute < start.minute:
                            continue
                        candidate = datetime.combine(day, time(hour, minute), tzinfo=self.tz)
                        if not self._exists(candidate):
                            continue
                        if candidate > after:
                            return candidate
            day += timedelta(days=1)

        raise InvalidCronExpressionError(self.expression, "never fires")

    def __repr__(self):
        return f"CronExpression({self.expression!r}, tz={self.tz.key!r})"
