from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


Sex = Literal["male", "female"]
ActivityLevel = Literal["sedentary", "lightly_active", "moderately_active", "very_active"]
Phase = Literal["recovery", "recomp", "cutting"]

# used when the profile is missing a value
DEFAULT_AGE = 45
DEFAULT_SEX: Sex = "male"
DEFAULT_HEIGHT_CM = 170.0
DEFAULT_WEIGHT_KG = 80.0
DEFAULT_ACTIVITY: ActivityLevel = "sedentary"

PROTEIN_G_PER_KG = 1.8
FAT_G_PER_KG = 0.8
MIN_CARBS_G = 100
MIN_CALORIES_BMR_RATIO = 0.85
REVERSE_DIET_START_KCAL = 100


@dataclass(frozen=True)
class Targets:
    maintenance_calories: int
    calories: int
    protein_g: int
    fat_g: int
    carbs_g: int
    phase: str


def _activity_multiplier(level: str | None) -> float:
    return {
        "sedentary": 1.2,
        "lightly_active": 1.375,
        "moderately_active": 1.55,
        "very_active": 1.725,
    }.get(level or DEFAULT_ACTIVITY, 1.2)


def bmr_mifflin_st_jeor(sex: str, age: int, height_cm: float, weight_kg: float) -> float:
    # BMR = 10W + 6.25H - 5A + s
    s = 5 if sex == "male" else -161
    return 10 * weight_kg + 6.25 * height_cm - 5 * age + s


def _round(x: float) -> int:
    # half-up, so 2.5 -> 3 like the targets users already have stored
    return int(x + 0.5) if x >= 0 else -int(-x + 0.5)


def macros_for_targets(calories: int, weight_kg: float) -> tuple[int, int, int]:
    protein = _round(PROTEIN_G_PER_KG * weight_kg)
    fat = _round(FAT_G_PER_KG * weight_kg)
    carbs = _round((calories - protein * 4 - fat * 9) / 4)
    return protein, fat, max(carbs, MIN_CARBS_G)


def compute_phase_targets(
    *,
    age: int | None = None,
    sex: str | None = None,
    height_cm: float | None = None,
    weight_kg: float | None = None,
    activity: str | None = None,
    force_phase: str | None = None,
    dieting_recently: bool | None = None,
    dieting_months: int | None = None,
    previous_lowest_calories: int | None = None,
    does_resistance_training: bool | None = None,
) -> Targets:
    """
    Calorie/macro targets for a coaching phase.

    With `force_phase` (a manual or evaluated transition) recovery runs at
    maintenance. Without it the phase is recommended from dieting history:
    long recent diets at a low below BMR start a reverse diet in recovery,
    everyone else starts in recomp.
    """
    age = age if age is not None else DEFAULT_AGE
    sex = sex or DEFAULT_SEX
    height_cm = height_cm if height_cm is not None else DEFAULT_HEIGHT_CM
    weight_kg = weight_kg if weight_kg is not None else DEFAULT_WEIGHT_KG

    bmr = bmr_mifflin_st_jeor(sex=sex, age=age, height_cm=height_cm, weight_kg=weight_kg)
    maintenance = _round(bmr * _activity_multiplier(activity))

    phase = force_phase or "recomp"
    adjustment = 0
    if not force_phase:
        if dieting_recently and dieting_months and dieting_months > 3:
            if previous_lowest_calories and previous_lowest_calories < bmr:
                phase = "recovery"
                adjustment = REVERSE_DIET_START_KCAL
        elif not does_resistance_training:
            phase = "recomp"

    if phase == "recovery":
        if force_phase:
            calories = maintenance
        else:
            calories = _round((previous_lowest_calories or bmr) + adjustment)
    elif phase == "cutting":
        calories = _round(maintenance * 0.85)
    else:
        calories = _round(maintenance * 0.95)

    calories = max(calories, _round(bmr * MIN_CALORIES_BMR_RATIO))
    protein, fat, carbs = macros_for_targets(calories, weight_kg)
    return Targets(
        maintenance_calories=maintenance,
        calories=calories,
        protein_g=protein,
        fat_g=fat,
        carbs_g=carbs,
        phase=phase,
    )
