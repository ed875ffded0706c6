from __future__ import annotations

from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "Asia/Seoul"


class TimezoneUtils:
    """Clinic-local dates on top of UTC storage."""

    @staticmethod
    def utc_now() -> datetime:
        """Naive UTC timestamp for database columns."""
        return datetime.now(dt_timezone.utc).replace(tzinfo=None)

    @staticmethod
    def clinic_timezone():
        name = DEFAULT_TIMEZONE
        if has_app_context():
            name = current_app.config.get("CLINIC_TIMEZONE") or DEFAULT_TIMEZONE
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            return pytz.timezone(DEFAULT_TIMEZONE)

    @staticmethod
    def clinic_now() -> datetime:
        return datetime.now(pytz.utc).astimezone(TimezoneUtils.clinic_timezone())

    @staticmethod
    def clinic_today() -> date:
        return TimezoneUtils.clinic_now().date()

    @staticmethod
    def clinic_day_bounds_utc(day: date | None = None) -> tuple[datetime, datetime]:
        """Return naive UTC ``[start, end)`` covering ``day`` in the clinic timezone."""
        tz = TimezoneUtils.clinic_timezone()
        day = day or TimezoneUtils.clinic_today()
        start_local = tz.localize(datetime(day.year, day.month, day.day))
        end_local = tz.localize(datetime(day.year, day.month, day.day) + timedelta(days=1))
        return (
            start_local.astimezone(pytz.utc).replace(tzinfo=None),
            end_local.astimezone(pytz.utc).replace(tzinfo=None),
        )

    @staticmethod
    def to_iso(value: datetime | date | None) -> str | None:
        if value is None:
            return None
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=dt_timezone.utc)
        return value.isoformat()

    @staticmethod
    def parse_date(value) -> date | None:
        """Accept ``date``, ``datetime`` or an ISO string; empty input is ``None``."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return date.fromisoformat(text[:10])

    @staticmethod
    def parse_datetime(value) -> datetime | None:
        """Parse to a naive UTC datetime."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            parsed = value
        else:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(dt_timezone.utc).replace(tzinfo=None)
        return parsed
