from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.nutrition import compute_phase_targets
from vitalpath.phase import (
    InvalidPhaseTransitionError,
    PhaseMetrics,
    PhaseService,
    ProfileNotFoundError,
    biofeedback_score,
    calorie_adherence,
    decide_transition,
    weeks_in_phase,
    weight_trend,
)
from vitalpath.records import DailyLogRecord
from vitalpath.repositories import DailyLogRepo, NotificationRepo, ProfileRepo
from vitalpath.timeutil import today_in

D0 = dt.date(2026, 5, 1)


def _day(i: int, **kw) -> DailyLogRecord:
    return DailyLogRecord(log_date=D0 - dt.timedelta(days=i), **kw)


def _metrics(stress: float = 0, energy: float = 0) -> PhaseMetrics:
    return PhaseMetrics(
        average_energy=energy,
        average_sleep=0,
        average_stress=stress,
        average_mood=0,
        weight_trend="stable",
        calorie_adherence=0,
    )


def test_weeks_in_phase() -> None:
    assert weeks_in_phase(None, D0) == 0
    assert weeks_in_phase(D0 - dt.timedelta(days=6), D0) == 0
    assert weeks_in_phase(D0 - dt.timedelta(days=7), D0) == 1
    assert weeks_in_phase(D0 - dt.timedelta(days=60), D0) == 8


def test_biofeedback_default_and_inverted_stress() -> None:
    assert biofeedback_score([]) == 5
    assert biofeedback_score([_day(0, steps=4000)]) == 5
    logs = [_day(0, energy_level=8, sleep_quality=6), _day(1, mood_rating=7, stress_level=3)]
    # (8 + 6 + 7 + (11 - 3)) / 4
    assert biofeedback_score(logs) == pytest.approx(7.25)


def test_weight_trend() -> None:
    assert weight_trend([_day(0, weight_kg=80), _day(1, weight_kg=82)]) == "stable"

    gaining = [_day(i, weight_kg=w) for i, w in enumerate([81.0, 81.0, 81.0, 80.0, 80.0, 80.0])]
    losing = [_day(i, weight_kg=w) for i, w in enumerate([79.0, 79.2, 79.1, 80.0, 80.1, 80.2])]
    flat = [_day(i, weight_kg=w) for i, w in enumerate([80.1, 80.0, 80.2, 80.0, 80.0, 80.0])]
    assert weight_trend(gaining) == "gaining"
    assert weight_trend(losing) == "losing"
    assert weight_trend(flat) == "stable"


def test_weight_trend_uses_last_14_weighed_entries() -> None:
    # the oldest entries fall outside the 14-entry window
    logs = [_day(i, weight_kg=80.0) for i in range(14)] + [_day(14 + i, weight_kg=90.0) for i in range(3)]
    assert weight_trend(logs) == "stable"


def test_calorie_adherence() -> None:
    assert calorie_adherence([], 2000) == 0
    logs = [
        _day(0, calories_consumed=2000),
        _day(1, calories_consumed=2200),
        _day(2, calories_consumed=2300),
        _day(3, calories_consumed=1700),
        _day(4),
    ]
    assert calorie_adherence(logs, 2000) == 50


def test_assessment_is_always_ready() -> None:
    ready, nxt, _ = decide_transition(current_phase="assessment", weeks=0, score=1.0, metrics=_metrics())
    assert ready is True
    assert nxt == "recovery"


@pytest.mark.parametrize(
    "weeks,score,ready",
    [(7, 9.0, False), (8, 6.5, True), (8, 6.4, False), (11, 3.0, False), (12, 3.0, True)],
)
def test_recovery_guards(weeks: int, score: float, ready: bool) -> None:
    r, nxt, reason = decide_transition(current_phase="recovery", weeks=weeks, score=score, metrics=_metrics())
    assert r is ready
    assert nxt == ("recomp" if ready else None)
    assert reason


def test_recovery_reason_counts_remaining_weeks() -> None:
    _, _, reason = decide_transition(current_phase="recovery", weeks=5, score=9.0, metrics=_metrics())
    assert "3 more weeks" in reason


@pytest.mark.parametrize(
    "weeks,score,weight,target,ready",
    [
        (12, 5.0, 85.0, 80.0, True),
        (12, 5.0, 82.0, 80.0, False),
        (11, 9.0, 95.0, 80.0, False),
        (16, 7.0, 80.0, 80.0, True),
        (16, 6.9, None, None, False),
    ],
)
def test_recomp_guards(weeks: int, score: float, weight: float | None, target: float | None, ready: bool) -> None:
    r, nxt, _ = decide_transition(
        current_phase="recomp",
        weeks=weeks,
        score=score,
        metrics=_metrics(),
        current_weight_kg=weight,
        target_weight_kg=target,
    )
    assert r is ready
    assert nxt == ("cutting" if ready else None)


@pytest.mark.parametrize(
    "weeks,score,stress,energy,ready",
    [
        (8, 4.9, 0, 0, True),
        (8, 5.0, 0, 0, False),
        (12, 9.0, 0, 0, True),
        (2, 9.0, 7.5, 4.0, True),
        (2, 9.0, 7.0, 4.0, False),
        (2, 9.0, 8.0, 5.0, False),
    ],
)
def test_cutting_guards(weeks: int, score: float, stress: float, energy: float, ready: bool) -> None:
    r, nxt, _ = decide_transition(
        current_phase="cutting", weeks=weeks, score=score, metrics=_metrics(stress=stress, energy=energy)
    )
    assert r is ready
    assert nxt == ("recovery" if ready else None)


@pytest.mark.asyncio
async def test_evaluate_missing_profile(db: AsyncSession) -> None:
    with pytest.raises(ProfileNotFoundError):
        await PhaseService(db).evaluate_phase_transition("ghost")


@pytest.mark.asyncio
async def test_evaluate_fresh_profile(db: AsyncSession) -> None:
    await ProfileRepo(db).create("u1")
    ev = await PhaseService(db).evaluate_phase_transition("u1")
    assert ev.current_phase == "assessment"
    assert ev.ready_for_transition is True
    assert ev.suggested_phase == "recovery"
    assert ev.biofeedback_score == 5
    assert ev.metrics.weight_trend == "stable"
    assert ev.as_dict()["metrics"]["calorie_adherence"] == 0


@pytest.mark.asyncio
async def test_evaluate_uses_logged_window(db: AsyncSession) -> None:
    today = today_in(None)
    await ProfileRepo(db).create(
        "u1", current_phase="recovery", phase_start_date=today - dt.timedelta(days=63), target_calories=2000
    )
    logs = DailyLogRepo(db)
    for i in range(5):
        await logs.upsert(user_id="u1", log_date=today - dt.timedelta(days=i), energy_level=8, sleep_quality=7,
                          mood_rating=8, stress_level=3, calories_consumed=2050)
    # outside the 28-day window
    await logs.upsert(user_id="u1", log_date=today - dt.timedelta(days=40), energy_level=1, sleep_quality=1)

    ev = await PhaseService(db).evaluate_phase_transition("u1")
    assert ev.weeks_in_phase == 9
    assert ev.biofeedback_score == pytest.approx(7.75)
    assert ev.ready_for_transition is True
    assert ev.suggested_phase == "recomp"
    assert ev.metrics.calorie_adherence == 100
    assert ev.metrics.average_stress == 3


@pytest.mark.asyncio
async def test_execute_transition_updates_targets(db: AsyncSession) -> None:
    await ProfileRepo(db).create("u1", age=40, sex="female", height_cm=165, current_weight_kg=70,
                                 activity_level="lightly_active", current_phase="recomp")
    profile = await PhaseService(db).execute_phase_transition("u1", "cutting")

    expected = compute_phase_targets(age=40, sex="female", height_cm=165, weight_kg=70,
                                     activity="lightly_active", force_phase="cutting")
    assert profile.current_phase == "cutting"
    assert profile.phase_start_date == today_in(None)
    assert profile.target_calories == expected.calories
    assert profile.maintenance_calories == expected.maintenance_calories
    assert profile.protein_grams == 126
    assert profile.fat_grams == 56

    notes = await NotificationRepo(db).for_user("u1")
    assert notes[0].type == "phase_change"
    assert "Fat Loss" in notes[0].message


@pytest.mark.asyncio
async def test_execute_rejects_skipping_phases(db: AsyncSession) -> None:
    await ProfileRepo(db).create("u1", current_phase="recovery")
    svc = PhaseService(db)
    with pytest.raises(InvalidPhaseTransitionError):
        await svc.execute_phase_transition("u1", "cutting")
    with pytest.raises(InvalidPhaseTransitionError):
        await svc.execute_phase_transition("u1", "assessment")
    with pytest.raises(ProfileNotFoundError):
        await svc.execute_phase_transition("ghost", "recovery")


@pytest.mark.asyncio
async def test_evaluate_and_transition(db: AsyncSession) -> None:
    await ProfileRepo(db).create("u1")
    await ProfileRepo(db).create("u2", current_phase="recovery", phase_start_date=today_in(None))
    svc = PhaseService(db)

    ev, profile = await svc.evaluate_and_transition("u1")
    assert profile is not None
    assert profile.current_phase == "recovery"
    # forced recovery runs at maintenance
    assert profile.target_calories == profile.maintenance_calories

    ev, profile = await svc.evaluate_and_transition("u2")
    assert ev.ready_for_transition is False
    assert profile is None


@pytest.mark.asyncio
async def test_transition_survives_failed_notification(db: AsyncSession) -> None:
    await ProfileRepo(db).create("u1")
    await db.execute(text("DROP TABLE notifications"))

    await PhaseService(db).execute_phase_transition("u1", "recovery")
    await db.commit()

    db.expire_all()
    profile = await ProfileRepo(db).get("u1")
    assert profile is not None
    assert profile.current_phase == "recovery"


@pytest.mark.asyncio
async def test_execute_raises_when_profile_update_fails(db: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    await ProfileRepo(db).create("u1")
    svc = PhaseService(db)

    async def vanished(user_id, fields):
        return None

    monkeypatch.setattr(svc.profiles, "update", vanished)
    with pytest.raises(ProfileNotFoundError):
        await svc.execute_phase_transition("u1", "recovery")
