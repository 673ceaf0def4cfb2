"""Static HealthKit type catalog.

Maps each supported vital type to its HealthKit quantity identifier and the
unit its values are reported in, plus the workout activity-type table and
the statistic identifiers read from workouts.

Values are normalized to simple units:
    heart rate  → bpm (count/min)
    HRV         → ms (SDNN)
    respiratory → breaths/min
    steps       → count
"""

from __future__ import annotations

from enum import Enum


class VitalType(str, Enum):
    """The five vital types read from HealthKit.

    The values are written verbatim as ``data_type`` on persisted rows.
    """

    HEART_RATE = "heartRate"
    RESTING_HEART_RATE = "restingHeartRate"
    HEART_RATE_VARIABILITY = "heartRateVariability"
    RESPIRATORY_RATE = "respiratoryRate"
    STEP_COUNT = "stepCount"


# VitalType → HKQuantityTypeIdentifier
HK_IDENTIFIERS: dict[VitalType, str] = {
    VitalType.HEART_RATE: "HKQuantityTypeIdentifierHeartRate",
    VitalType.RESTING_HEART_RATE: "HKQuantityTypeIdentifierRestingHeartRate",
    VitalType.HEART_RATE_VARIABILITY: "HKQuantityTypeIdentifierHeartRateVariabilitySDNN",
    VitalType.RESPIRATORY_RATE: "HKQuantityTypeIdentifierRespiratoryRate",
    VitalType.STEP_COUNT: "HKQuantityTypeIdentifierStepCount",
}

_UNITS: dict[VitalType, str] = {
    VitalType.HEART_RATE: "bpm",
    VitalType.RESTING_HEART_RATE: "bpm",
    VitalType.HEART_RATE_VARIABILITY: "ms",
    VitalType.RESPIRATORY_RATE: "breaths/min",
    VitalType.STEP_COUNT: "count",
}

HK_WORKOUT_TYPE = "HKWorkoutTypeIdentifier"

# Workout statistics
HK_ACTIVE_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
HK_DISTANCE_WALKING_RUNNING = "HKQuantityTypeIdentifierDistanceWalkingRunning"
HK_DISTANCE_CYCLING = "HKQuantityTypeIdentifierDistanceCycling"
HK_DISTANCE_SWIMMING = "HKQuantityTypeIdentifierDistanceSwimming"

# Tried in order; the first one present on a workout is used.
DISTANCE_STATISTIC_PRIORITY: tuple[str, ...] = (
    HK_DISTANCE_WALKING_RUNNING,
    HK_DISTANCE_CYCLING,
    HK_DISTANCE_SWIMMING,
)

WORKOUT_STATISTIC_IDENTIFIERS: tuple[str, ...] = (HK_ACTIVE_ENERGY, *DISTANCE_STATISTIC_PRIORITY)

HK_INDOOR_WORKOUT_KEY = "HKIndoorWorkout"

#: Identifiers we request read access for: the five vitals plus workouts.
READ_IDENTIFIERS: tuple[str, ...] = (*HK_IDENTIFIERS.values(), HK_WORKOUT_TYPE)

#: Nothing is written back to HealthKit.
WRITE_IDENTIFIERS: tuple[str, ...] = ()

OTHER_ACTIVITY = "Other"

# HKWorkoutActivityType raw value → display name.  Only the activity types
# relevant to a cardiac health study are listed.
WORKOUT_ACTIVITY_NAMES: dict[int, str] = {
    1: "American Football",
    6: "Basketball",
    8: "Boxing",
    9: "Climbing",
    11: "Cross Training",
    13: "Cycling",
    14: "Dance",
    16: "Elliptical",
    20: "Strength Training",
    21: "Golf",
    24: "Hiking",
    29: "Mind & Body",
    35: "Rowing",
    37: "Running",
    41: "Soccer",
    44: "Stair Climbing",
    46: "Swimming",
    48: "Tennis",
    50: "Traditional Strength Training",
    52: "Walking",
    57: "Yoga",
    58: "Barre",
    59: "Core Training",
    62: "Flexibility",
    63: "HIIT",
    64: "Jump Rope",
    66: "Pilates",
    72: "Tai Chi",
    73: "Mixed Cardio",
    79: "Pickleball",
    80: "Cooldown",
    3000: OTHER_ACTIVITY,
}


def unit_for(vital_type: VitalType | str) -> str:
    """Return the canonical unit for a vital type.

    Raises:
        ValueError: If ``vital_type`` is not one of the five supported types.
    """
    return _UNITS[VitalType(vital_type)]


def query_identifier_for(vital_type: VitalType | str) -> str:
    """Return the HealthKit quantity identifier for a vital type.

    Raises:
        ValueError: If ``vital_type`` is not one of the five supported types.
    """
    return HK_IDENTIFIERS[VitalType(vital_type)]


def activity_name(activity_type_code: int | None) -> str:
    """Return the display name for a workout activity code, ``"Other"`` if unknown."""
    if activity_type_code is None:
        return OTHER_ACTIVITY
    return WORKOUT_ACTIVITY_NAMES.get(activity_type_code, OTHER_ACTIVITY)
