import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from metalbill.errors import ConfigError, InvalidDateFormat, InvalidTimeFormat

# suffixes completing a partial timestamp, keyed by the partial's length
_ISO_COMPLETIONS: "dict[int, str]" = {
    10: "T00:00:00.000+00:00",  # YYYY-MM-DD
    19: ".000+00:00",  # YYYY-MM-DDTHH:MM:SS
    23: "+00:00",  # YYYY-MM-DDTHH:MM:SS.mmm
}

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def partial_to_full_iso(partial: "str") -> "str":
    """
    completes a partial ISO timestamp, assuming UTC and zero for the
    missing parts. The format is chosen by length only; any other length
    is assumed to be a full ISO timestamp already.
    """
    return partial + _ISO_COMPLETIONS.get(len(partial), "")


def parse_partial_iso_time(ts: "str") -> "datetime":
    full = partial_to_full_iso(ts)
    if len(full) > 10 and full[10] != "T":
        raise InvalidTimeFormat(
            f"invalid time {ts!r}, date and time must be separated by T"
        )
    try:
        parsed = datetime.fromisoformat(full)
    except ValueError as e:
        raise InvalidTimeFormat(
            f"invalid time {ts!r}, it must be in ISO8601 format: {e}"
        ) from e

    if parsed.tzinfo is None:
        raise InvalidTimeFormat(f"invalid time {ts!r}, missing UTC offset")

    return parsed.astimezone(timezone.utc)


def parse_date(value: "str") -> "date":
    error = InvalidDateFormat(
        f"invalid date {value!r}, it must be in YYYY-MM-DD format"
    )
    if not _DATE_RE.fullmatch(value):
        raise error
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise error from e


def format_api_time(moment: "datetime") -> "str":
    """
    formats a timestamp the way the billing API filters expect,
    YYYY-MM-DDTHH:MM:SS.mmm in UTC.
    """
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}"


def days_in_month(moment: "datetime") -> "int":
    utc = moment.astimezone(timezone.utc)
    return calendar.monthrange(utc.year, utc.month)[1]


def day_start(day: "date") -> "datetime":
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class DateRange:
    """
    DateRange is a range of whole days, both ends inclusive.
    """

    start: "date"
    end: "date"

    def window(self) -> "tuple[datetime, datetime]":
        """
        returns the half-open [start, end) timestamp window covering
        every day in the range.
        """
        return day_start(self.start), day_start(self.end + timedelta(days=1))


def report_ranges(
    end: "date",
    days: "int",
    baseline_end: "date | None" = None,
) -> "tuple[DateRange, DateRange]":
    """
    computes the report range ending on `end` and the baseline range
    of the same length. Without an explicit baseline end the baseline
    finishes the day before the report starts.
    """
    if days < 1:
        raise ConfigError(f"number of days must be at least 1, got {days}")

    span = timedelta(days=days - 1)
    report = DateRange(start=end - span, end=end)

    if baseline_end is None:
        baseline_end = report.start - timedelta(days=1)

    baseline = DateRange(start=baseline_end - span, end=baseline_end)
    return report, baseline
