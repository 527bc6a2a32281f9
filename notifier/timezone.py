"""
Date parsing and clock utilities pinned to one named timezone.

All submitted dates, "now", and trigger specs are evaluated in the same
zone so that past/future comparisons are meaningful.
"""

from dataclasses import dataclass
from datetime import datetime

import pytz
from apscheduler.triggers.cron import CronTrigger

# Tried in order when the ISO-8601 parse fails. Naive results are
# interpreted in the clock's zone.
FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of Clock.parse: either a zoned instant or a failure reason."""

    value: datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def failure(cls, error: str) -> "ParseResult":
        return cls(error=error)


@dataclass(frozen=True)
class TriggerSpec:
    """Wall-clock minute at which a one-shot trigger fires."""

    minute: int
    hour: int
    day: int
    month: int

    @property
    def cron_expression(self) -> str:
        return f"{self.minute} {self.hour} {self.day} {self.month} *"

    def to_cron_trigger(self, tz) -> CronTrigger:
        """
        Build the equivalent cron trigger.

        Cron fields repeat yearly, so whoever arms this trigger must remove
        the job the first time it fires.
        """
        return CronTrigger(
            minute=self.minute,
            hour=self.hour,
            day=self.day,
            month=self.month,
            timezone=tz,
        )


class Clock:
    """Parses and produces instants in a single named timezone."""

    def __init__(self, tz_name: str):
        try:
            self.tz = pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {tz_name}")
        self.tz_name = tz_name

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def parse(self, value: str | None) -> ParseResult:
        """
        Parse a user-supplied date string into an instant in this zone.

        ISO-8601 is tried first (an explicit offset is honoured and converted),
        then each of FALLBACK_FORMATS. Never raises.

        Returns:
            ParseResult with value set, or error "empty" / "invalid_format"
        """
        if value is None or not str(value).strip():
            return ParseResult.failure("empty")

        text = str(value).strip()
        parsed = self._parse_iso(text)
        if parsed is None:
            for pattern in FALLBACK_FORMATS:
                try:
                    parsed = self._localize(datetime.strptime(text, pattern))
                    break
                except (ValueError, OverflowError):
                    continue

        if parsed is None:
            return ParseResult.failure("invalid_format")
        return ParseResult(value=parsed)

    def _parse_iso(self, text: str) -> datetime | None:
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
            if parsed.tzinfo is None:
                return self._localize(parsed)
            return parsed.astimezone(self.tz)
        except (ValueError, OverflowError):
            # Unparseable, or shifting into the zone leaves datetime's range
            return None

    def _localize(self, naive: datetime) -> datetime:
        # normalize() shifts wall times that fall in a DST gap
        return self.tz.normalize(self.tz.localize(naive))

    def normalize(self, dt: datetime) -> datetime:
        """Convert a datetime into this zone (naive datetimes treated as UTC)."""
        if dt.tzinfo is None:
            dt = pytz.UTC.localize(dt)
        return dt.astimezone(self.tz)

    def format(self, dt: datetime) -> str:
        """ISO-8601 with offset, e.g. 2025-03-01T10:00:00+02:00."""
        return self.normalize(dt).isoformat(timespec="seconds")

    def is_due(self, dt: datetime) -> bool:
        """True when dt is now or already past."""
        return self.normalize(dt) <= self.now()

    def to_trigger_spec(self, dt: datetime) -> TriggerSpec:
        local = self.normalize(dt)
        return TriggerSpec(
            minute=local.minute,
            hour=local.hour,
            day=local.day,
            month=local.month,
        )
