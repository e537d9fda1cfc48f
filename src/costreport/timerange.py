import re
from datetime import datetime, timedelta, timezone

from costreport.errors import TimeParseError
from costreport.models import TimeRange

# start timestamps are given as e.g. 2023-01-01T00:00
TIME_LAYOUT = "%Y-%m-%dT%H:%M"
DEFAULT_GRANULARITY = timedelta(hours=4)

# nanoseconds per unit
_DURATION_UNITS: "dict[str, int]" = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: "str") -> "timedelta":
    """
    parses a duration string such as "4h", "90m" or "1h30m" into a
    timedelta. An empty string yields DEFAULT_GRANULARITY.

    timedelta only resolves microseconds, so nanosecond amounts are
    rounded to the nearest microsecond ("1999ns" is 2us, "400ns" is 0).
    """
    if text == "":
        return DEFAULT_GRANULARITY

    body = text
    sign = 1
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)

    nanoseconds = 0.0
    pos = 0
    # each part is a decimal number followed by a unit, no separators
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise TimeParseError(f"could not parse duration {text!r}")
        nanoseconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise TimeParseError(f"could not parse duration {text!r}")

    try:
        return timedelta(microseconds=sign * nanoseconds / 1000)
    except (OverflowError, ValueError) as err:
        raise TimeParseError(f"could not parse duration {text!r}") from err


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


def resolve_time_range(
    start: "str",
    granularity: "timedelta",
    now: "datetime | None" = None,
) -> "TimeRange":
    """
    turns an optional start timestamp and a granularity into a report
    window. Without a start, the window ends now and spans the
    granularity backwards.
    """
    if start:
        try:
            start_time = datetime.strptime(start, TIME_LAYOUT)
        except ValueError as err:
            raise TimeParseError(
                f"incorrect start format {start!r}: should be YYYY-MM-DDTHH:MM"
            ) from err

        start_time = start_time.replace(tzinfo=timezone.utc)
        return TimeRange(start=start_time, end=start_time + granularity)

    end_time = now if now is not None else _utcnow()
    return TimeRange(start=end_time - granularity, end=end_time)
