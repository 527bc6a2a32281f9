"""Tests for the zoned clock: parsing, normalisation and trigger specs."""

from datetime import datetime, timedelta, timezone

import pytest
import pytz

from notifier.timezone import Clock, TriggerSpec


@pytest.fixture
def clock():
    return Clock("Africa/Cairo")


class TestParse:
    def test_iso_and_space_separated_parse_to_same_instant(self, clock):
        """'2025-01-15 10:00:00' and '2025-01-15T10:00:00' are the same instant."""
        spaced = clock.parse("2025-01-15 10:00:00")
        iso = clock.parse("2025-01-15T10:00:00")

        assert spaced.ok and iso.ok
        assert spaced.value == iso.value
        assert spaced.value.astimezone(timezone.utc) == datetime(
            2025, 1, 15, 8, 0, tzinfo=timezone.utc
        )

    def test_naive_input_is_interpreted_in_clock_zone(self, clock):
        result = clock.parse("2025-01-15T10:00:00")

        assert result.value.tzinfo.zone == "Africa/Cairo"
        assert result.value.hour == 10

    def test_explicit_offset_is_converted(self, clock):
        """A UTC 'Z' suffix is honoured, then shown in the clock zone."""
        result = clock.parse("2025-01-15T10:00:00Z")

        assert result.ok
        assert result.value.hour == 12
        assert result.value.astimezone(timezone.utc).hour == 10

    def test_minute_precision_input(self, clock):
        result = clock.parse("2025-01-15 10:30")

        assert result.ok
        assert (result.value.hour, result.value.minute) == (10, 30)

    @pytest.mark.parametrize("text", ["15-01-2025 10:00:00", "15/01/2025 10:00:00"])
    def test_day_first_fallback_formats(self, clock, text):
        result = clock.parse(text)

        assert result.ok
        assert result.value == clock.parse("2025-01-15 10:00:00").value

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input_is_a_typed_failure(self, clock, text):
        result = clock.parse(text)

        assert not result.ok
        assert result.value is None
        assert result.error == "empty"

    def test_garbage_is_a_typed_failure(self, clock):
        result = clock.parse("next tuesday-ish")

        assert not result.ok
        assert result.error == "invalid_format"

    def test_impossible_date_is_rejected(self, clock):
        assert clock.parse("2025-02-30 10:00:00").error == "invalid_format"

    @pytest.mark.parametrize(
        "text",
        ["0001-01-01T00:00:00", "0001-01-01 00:00:00", "9999-12-31T23:59:59-05:00"],
    )
    def test_dates_at_the_edge_of_the_calendar_are_rejected(self, clock, text):
        """Converting into the zone would leave datetime's range."""
        result = clock.parse(text)

        assert not result.ok
        assert result.error == "invalid_format"


class TestNowAndNormalize:
    def test_now_is_in_clock_zone(self, clock):
        now = clock.now()

        assert now.tzinfo is not None
        assert now.tzinfo.zone == "Africa/Cairo"
        assert abs(now - datetime.now(timezone.utc)) < timedelta(seconds=5)

    def test_naive_datetime_treated_as_utc(self, clock):
        local = clock.normalize(datetime(2025, 1, 15, 8, 0))

        assert local.hour == 10

    def test_format_includes_offset(self, clock):
        dt = clock.parse("2025-01-15 10:00:00").value

        assert clock.format(dt) == "2025-01-15T10:00:00+02:00"

    def test_is_due(self, clock):
        assert clock.is_due(clock.now() - timedelta(minutes=1))
        assert not clock.is_due(clock.now() + timedelta(minutes=1))

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError):
            Clock("Mars/Olympus_Mons")


class TestTriggerSpec:
    def test_spec_fields_are_wall_clock_in_zone(self, clock):
        dt = datetime(2025, 1, 15, 8, 30, tzinfo=timezone.utc)  # 10:30 in Cairo

        spec = clock.to_trigger_spec(dt)

        assert spec == TriggerSpec(minute=30, hour=10, day=15, month=1)
        assert spec.cron_expression == "30 10 15 1 *"

    def test_cron_trigger_fires_at_that_minute(self, clock):
        spec = TriggerSpec(minute=30, hour=10, day=15, month=1)
        trigger = spec.to_cron_trigger(clock.tz)
        start = clock.tz.localize(datetime(2025, 1, 15, 9, 0))

        next_fire = trigger.get_next_fire_time(None, start)

        assert next_fire == clock.tz.localize(datetime(2025, 1, 15, 10, 30))
        assert next_fire.astimezone(pytz.UTC).hour == 8
