"""Tests for the type catalog and the raw → canonical normalizer."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.healthkit.catalog import (
    HK_ACTIVE_ENERGY,
    HK_DISTANCE_CYCLING,
    HK_DISTANCE_SWIMMING,
    HK_DISTANCE_WALKING_RUNNING,
    HK_IDENTIFIERS,
    READ_IDENTIFIERS,
    VitalType,
    activity_name,
    query_identifier_for,
    unit_for,
)
from src.healthkit.normalizer import (
    calendar_date,
    duration_minutes,
    normalize_vital_sample,
    normalize_workout,
    to_iso_timestamp,
)
from src.healthkit.tests.conftest import raw_sample, raw_workout, statistic


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TestCatalog:
    @pytest.mark.parametrize(
        "vital_type, unit",
        [
            (VitalType.HEART_RATE, "bpm"),
            (VitalType.RESTING_HEART_RATE, "bpm"),
            (VitalType.HEART_RATE_VARIABILITY, "ms"),
            (VitalType.RESPIRATORY_RATE, "breaths/min"),
            (VitalType.STEP_COUNT, "count"),
        ],
    )
    def test_every_vital_type_has_a_unit(self, vital_type: VitalType, unit: str) -> None:
        assert unit_for(vital_type) == unit

    def test_lookup_accepts_wire_values(self) -> None:
        assert unit_for("heartRateVariability") == "ms"
        assert query_identifier_for("stepCount") == "HKQuantityTypeIdentifierStepCount"

    def test_hrv_uses_sdnn_identifier(self) -> None:
        assert query_identifier_for(VitalType.HEART_RATE_VARIABILITY).endswith("SDNN")

    def test_unknown_vital_type_is_an_error(self) -> None:
        with pytest.raises(ValueError):
            unit_for("bloodGlucose")
        with pytest.raises(ValueError):
            query_identifier_for("bloodGlucose")

    def test_read_scopes_cover_vitals_and_workouts(self) -> None:
        assert set(HK_IDENTIFIERS.values()) < set(READ_IDENTIFIERS)
        assert "HKWorkoutTypeIdentifier" in READ_IDENTIFIERS
        assert len(READ_IDENTIFIERS) == 6

    def test_known_activity_names(self) -> None:
        assert activity_name(37) == "Running"
        assert activity_name(52) == "Walking"
        assert activity_name(63) == "HIIT"

    def test_unknown_activity_code_is_other(self) -> None:
        assert activity_name(9999) == "Other"
        assert activity_name(None) == "Other"


# ---------------------------------------------------------------------------
# Vital samples
# ---------------------------------------------------------------------------


class TestNormalizeVitalSample:
    def test_none_record_is_absent(self) -> None:
        assert normalize_vital_sample(VitalType.HEART_RATE, None) is None

    def test_null_quantity_is_absent(self) -> None:
        assert normalize_vital_sample(VitalType.HEART_RATE, raw_sample(None)) is None

    def test_missing_quantity_is_absent(self) -> None:
        raw = {"startDate": "2026-02-23T08:00:00Z", "endDate": "2026-02-23T08:00:00Z"}
        assert normalize_vital_sample(VitalType.STEP_COUNT, raw) is None

    def test_zero_quantity_is_kept(self) -> None:
        sample = normalize_vital_sample(VitalType.STEP_COUNT, raw_sample(0))
        assert sample is not None
        assert sample.value == 0

    @pytest.mark.parametrize("vital_type", list(VitalType))
    def test_unit_comes_from_catalog_not_record(self, vital_type: VitalType) -> None:
        sample = normalize_vital_sample(vital_type, raw_sample(42, unit="furlongs"))
        assert sample is not None
        assert sample.unit == unit_for(vital_type)

    def test_fields_copied_verbatim(self) -> None:
        raw = raw_sample(61.5, "2026-02-23T08:00:00+01:00", "2026-02-23T08:01:00+01:00")
        sample = normalize_vital_sample("heartRate", raw)
        assert sample is not None
        assert sample.type is VitalType.HEART_RATE
        assert sample.value == 61.5
        assert sample.start_time == "2026-02-23T08:00:00+01:00"
        assert sample.end_time == "2026-02-23T08:01:00+01:00"

    def test_unknown_type_raises_even_without_record(self) -> None:
        with pytest.raises(ValueError):
            normalize_vital_sample("bloodGlucose", None)


# ---------------------------------------------------------------------------
# Calendar dates
# ---------------------------------------------------------------------------


class TestCalendarDate:
    def test_iso_string_with_z(self) -> None:
        assert calendar_date("2026-02-23T23:59:59.999Z") == "2026-02-23"

    def test_offset_string_uses_utc_day(self) -> None:
        # 2026-02-23 23:30 at UTC-5 is 2026-02-24 04:30 UTC
        assert calendar_date("2026-02-23T23:30:00-05:00") == "2026-02-24"

    def test_aware_datetime_uses_utc_day(self) -> None:
        tz = timezone(timedelta(hours=9))
        assert calendar_date(datetime(2026, 2, 24, 3, 0, tzinfo=tz)) == "2026-02-23"

    def test_naive_datetime_is_utc(self) -> None:
        assert calendar_date(datetime(2026, 2, 23, 23, 0)) == "2026-02-23"

    def test_date_object(self) -> None:
        assert calendar_date(date(2026, 2, 23)) == "2026-02-23"

    @pytest.mark.parametrize(
        "value",
        [
            "2026-02-23T08:00:00Z",
            "2026-02-23T23:30:00-05:00",
            "2026-01-01T00:00:00.000+14:00",
            datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc),
        ],
    )
    def test_idempotent(self, value: object) -> None:
        day = calendar_date(value)
        assert calendar_date(day + "T00:00:00Z") == day

    def test_unparseable_string_raises(self) -> None:
        with pytest.raises(ValueError):
            calendar_date("not a date")


class TestIsoTimestamp:
    def test_datetime_formatted_as_utc_z(self) -> None:
        tz = timezone(timedelta(hours=2))
        assert to_iso_timestamp(datetime(2026, 2, 23, 9, 30, tzinfo=tz)) == "2026-02-23T07:30:00.000Z"

    def test_string_normalized(self) -> None:
        assert to_iso_timestamp("2026-02-23T07:30:00+00:00") == "2026-02-23T07:30:00.000Z"


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------


class TestDuration:
    @pytest.mark.parametrize(
        "seconds, minutes",
        [(0, 0), (29, 0), (30, 1), (89, 1), (90, 2), (125, 2), (150, 3), (1830, 31), (3600, 60)],
    )
    def test_rounds_half_up(self, seconds: float, minutes: int) -> None:
        assert duration_minutes(seconds) == minutes

    def test_workout_duration_from_quantity(self) -> None:
        workout = normalize_workout(raw_workout("a", seconds=125))
        assert workout.duration_minutes == 2

    def test_workout_duration_from_bare_number(self) -> None:
        raw = raw_workout("a")
        raw["duration"] = 150
        assert normalize_workout(raw).duration_minutes == 3

    def test_missing_duration_is_zero(self) -> None:
        raw = raw_workout("a")
        del raw["duration"]
        assert normalize_workout(raw).duration_minutes == 0


class TestCalories:
    def test_rounded_to_nearest_kcal(self) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_ACTIVE_ENERGY: statistic(301.5, "kcal")})
        assert workout.calories_burned == 302

    def test_zero_sum_is_absent(self) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_ACTIVE_ENERGY: statistic(0, "kcal")})
        assert workout.calories_burned is None

    def test_missing_statistic_is_absent(self) -> None:
        assert normalize_workout(raw_workout("a"), {}).calories_burned is None
        assert normalize_workout(raw_workout("a")).calories_burned is None


class TestDistance:
    def test_meters_to_km_two_decimals(self) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_DISTANCE_WALKING_RUNNING: statistic(1234)})
        assert workout.distance_km == 1.23

    def test_rounds_half_up(self) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_DISTANCE_CYCLING: statistic(5125)})
        assert workout.distance_km == 5.13

    def test_zero_meters_is_absent(self) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_DISTANCE_WALKING_RUNNING: statistic(0)})
        assert workout.distance_km is None

    def test_walking_running_preferred_over_cycling_and_swimming(self) -> None:
        stats = {
            HK_DISTANCE_SWIMMING: statistic(1500),
            HK_DISTANCE_CYCLING: statistic(20000),
            HK_DISTANCE_WALKING_RUNNING: statistic(5000),
        }
        assert normalize_workout(raw_workout("a"), stats).distance_km == 5.0

    def test_cycling_preferred_over_swimming(self) -> None:
        stats = {HK_DISTANCE_SWIMMING: statistic(1500), HK_DISTANCE_CYCLING: statistic(20000)}
        assert normalize_workout(raw_workout("a"), stats).distance_km == 20.0

    def test_swimming_used_last(self) -> None:
        stats = {HK_DISTANCE_SWIMMING: statistic(1500)}
        assert normalize_workout(raw_workout("a"), stats).distance_km == 1.5

    def test_first_present_statistic_wins_even_when_zero(self) -> None:
        stats = {HK_DISTANCE_WALKING_RUNNING: statistic(0), HK_DISTANCE_CYCLING: statistic(20000)}
        assert normalize_workout(raw_workout("a"), stats).distance_km is None

    def test_no_distance_statistics(self) -> None:
        assert normalize_workout(raw_workout("a")).distance_km is None


class TestWorkoutFields:
    def test_unknown_activity_code_keeps_raw_code(self) -> None:
        workout = normalize_workout(raw_workout("a", activity_type=9999))
        assert workout.activity_type == "Other"
        assert workout.activity_type_code == 9999

    def test_known_activity(self) -> None:
        workout = normalize_workout(raw_workout("a", activity_type=46))
        assert workout.activity_type == "Swimming"
        assert workout.activity_type_code == 46

    def test_indoor_defaults_to_false(self) -> None:
        assert normalize_workout(raw_workout("a")).indoor is False

    def test_indoor_flag_read_from_metadata(self) -> None:
        assert normalize_workout(raw_workout("a", indoor=True)).indoor is True

    def test_null_metadata(self) -> None:
        raw = raw_workout("a")
        raw["metadata"] = None
        assert normalize_workout(raw).indoor is False

    def test_id_preserved(self) -> None:
        assert normalize_workout(raw_workout("5B1C-77")).id == "5B1C-77"

    def test_datetime_timestamps_become_iso_strings(self) -> None:
        raw = raw_workout("a")
        raw["startDate"] = datetime(2026, 2, 23, 7, 0, tzinfo=timezone.utc)
        raw["endDate"] = datetime(2026, 2, 23, 7, 30, tzinfo=timezone.utc)
        workout = normalize_workout(raw)
        assert workout.start_time == "2026-02-23T07:00:00.000Z"
        assert workout.end_time == "2026-02-23T07:30:00.000Z"

    def test_string_timestamps_normalized(self) -> None:
        raw = raw_workout("a", start="2026-02-23T08:00:00+01:00", end="2026-02-23T08:30:00+01:00")
        workout = normalize_workout(raw)
        assert workout.start_time == "2026-02-23T07:00:00.000Z"
        assert workout.end_time == "2026-02-23T07:30:00.000Z"


class TestMalformedValues:
    def test_non_numeric_vital_quantity_is_absent(self) -> None:
        assert normalize_vital_sample(VitalType.HEART_RATE, raw_sample("n/a")) is None

    def test_non_mapping_vital_record_is_absent(self) -> None:
        assert normalize_vital_sample(VitalType.HEART_RATE, [72]) is None

    @pytest.mark.parametrize("value", ["n/a", float("nan"), float("inf"), True, [301]])
    def test_unusable_calories_are_absent(self, value: object) -> None:
        workout = normalize_workout(raw_workout("a"), {HK_ACTIVE_ENERGY: statistic(value, "kcal")})
        assert workout.calories_burned is None

    def test_unusable_distance_is_absent(self) -> None:
        stats = {HK_DISTANCE_WALKING_RUNNING: statistic("far")}
        assert normalize_workout(raw_workout("a"), stats).distance_km is None

    def test_statistic_without_sum_mapping(self) -> None:
        stats = {HK_ACTIVE_ENERGY: "301 kcal", HK_DISTANCE_CYCLING: {"sum": 5000}}
        workout = normalize_workout(raw_workout("a"), stats)
        assert workout.calories_burned is None
        assert workout.distance_km is None

    def test_non_finite_duration_is_zero(self) -> None:
        raw = raw_workout("a")
        raw["duration"] = float("nan")
        assert normalize_workout(raw).duration_minutes == 0

    def test_non_mapping_metadata(self) -> None:
        raw = raw_workout("a")
        raw["metadata"] = ["HKIndoorWorkout"]
        assert normalize_workout(raw).indoor is False
