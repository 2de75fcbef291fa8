"""Tests for timeline thresholds and per-event overrides."""

from datetime import date

from musicday.utils.thresholds import (
    EVENT_MILESTONES,
    ThresholdKey,
    TimelineOverrides,
    build_timeline,
    get_milestone_offset,
    get_threshold,
    is_early_bird,
    is_personalized_clothing_open,
    merchandise_deadline,
    parse_overrides,
    preview_available_date,
    serialize_overrides,
)

EVENT_DATE = date(2025, 6, 15)


class TestParseOverrides:
    """Tests for reading the stored timeline_overrides value"""

    def test_empty_values_yield_empty_overrides(self):
        """None and empty string both parse to no overrides."""
        assert parse_overrides(None).is_empty()
        assert parse_overrides("").is_empty()

    def test_malformed_json_is_ignored(self):
        """Broken JSON falls back to defaults instead of raising."""
        assert parse_overrides("{not json").is_empty()

    def test_non_object_json_is_ignored(self):
        """A JSON array is not a valid overrides object."""
        assert parse_overrides("[1, 2, 3]").is_empty()

    def test_invalid_value_types_are_ignored(self):
        """A non-numeric threshold invalidates the whole payload."""
        assert parse_overrides('{"early_bird_deadline_days": "soon"}').is_empty()

    def test_parses_json_string(self):
        """Known keys are read, unknown keys dropped."""
        overrides = parse_overrides('{"preview_available_days": 3, "audio_hidden": true, "unknown": 1}')
        assert overrides.preview_available_days == 3
        assert overrides.audio_hidden is True

    def test_milestone_offsets_drop_non_numeric_entries(self):
        """Only numeric milestone offsets survive."""
        overrides = parse_overrides({"milestones": {"FINAL_PREP": -10, "EVENT_DAY": "x", "MINICARD_ORDER": True}})
        assert overrides.milestones == {"FINAL_PREP": -10}


class TestGetThreshold:
    """Tests for effective threshold values"""

    def test_defaults_without_overrides(self):
        """Absent overrides return the system default."""
        assert get_threshold(ThresholdKey.EARLY_BIRD_DEADLINE_DAYS) == 19
        assert get_threshold(ThresholdKey.PREVIEW_AVAILABLE_DAYS, TimelineOverrides()) == 7

    def test_zero_override_wins(self):
        """An explicit 0 is a real override, not a missing value."""
        overrides = TimelineOverrides(preview_available_days=0)
        assert get_threshold(ThresholdKey.PREVIEW_AVAILABLE_DAYS, overrides) == 0

    def test_string_key_is_accepted(self):
        """Threshold keys may be passed by value."""
        assert get_threshold("merchandise_deadline_days") == 14


class TestDateHelpers:
    """Tests for dates derived from thresholds"""

    def test_early_bird_boundary(self):
        """Early bird is open while at least 19 days remain."""
        assert is_early_bird(EVENT_DATE, date(2025, 5, 27))
        assert not is_early_bird(EVENT_DATE, date(2025, 5, 28))

    def test_early_bird_uses_override(self):
        """A shorter early bird window moves the cutoff."""
        overrides = TimelineOverrides(early_bird_deadline_days=5)
        assert is_early_bird(EVENT_DATE, date(2025, 6, 10), overrides)

    def test_release_and_merchandise_dates(self):
        """Preview and merchandise dates are offsets from the event date."""
        assert preview_available_date(EVENT_DATE) == date(2025, 6, 22)
        assert merchandise_deadline(EVENT_DATE) == date(2025, 6, 29)

    def test_personalized_clothing_cutoff(self):
        """Personalized clothing closes 4 days before the event."""
        assert is_personalized_clothing_open(EVENT_DATE, date(2025, 6, 11))
        assert not is_personalized_clothing_open(EVENT_DATE, date(2025, 6, 12))


class TestTimeline:
    """Tests for milestone timelines"""

    def test_milestone_override(self):
        """Overridden milestones use the event specific offset."""
        overrides = TimelineOverrides(milestones={"FINAL_PREP": -10})
        assert get_milestone_offset("FINAL_PREP", overrides) == -10
        assert get_milestone_offset("EVENT_DAY", overrides) == 0

    def test_build_timeline_is_sorted_and_complete(self):
        """Every milestone appears once, ordered by date."""
        timeline = build_timeline(EVENT_DATE)
        assert len(timeline) == len(EVENT_MILESTONES)
        dates = [m["date"] for m in timeline]
        assert dates == sorted(dates)
        assert timeline[0]["milestone"] == "POSTER_DEADLINE"
        event_day = next(m for m in timeline if m["milestone"] == "EVENT_DAY")
        assert event_day["date"] == "2025-06-15"


class TestSerializeOverrides:
    """Tests for writing overrides back"""

    def test_only_set_keys_are_written(self):
        """Unset keys are omitted; falsy values are kept."""
        serialized = serialize_overrides(TimelineOverrides(preview_available_days=0, audio_hidden=False))
        assert parse_overrides(serialized) == TimelineOverrides(preview_available_days=0, audio_hidden=False)
        assert '"full_release_days"' not in serialized

    def test_empty_overrides_serialize_to_none(self):
        """Nothing overridden clears the field."""
        assert serialize_overrides(TimelineOverrides()) is None
