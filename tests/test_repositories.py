from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.jsonutil import sets_from_json, sets_to_json
from vitalpath.records import SetRecord
from vitalpath.repositories import DailyLogRepo, ExerciseLogRepo, ProfileRepo

D0 = dt.date(2026, 6, 1)


def test_sets_from_json_accepts_legacy_weight_key() -> None:
    sets = sets_from_json('[{"reps":8,"weight":60},{"reps":10}]')
    assert sets == (SetRecord(8, 60.0), SetRecord(10, None))
    assert sets_from_json(None) is None
    assert sets_from_json(sets_to_json([])) == ()


@pytest.mark.parametrize(
    "raw",
    [
        '{"reps":8}',
        '["eight"]',
        '[{"reps":-1}]',
        '[{"reps":true}]',
        '[{"reps":"8"}]',
        '[{"reps":8,"weight_kg":"heavy"}]',
        '[{"reps":8,"weight_kg":-5}]',
    ],
)
def test_sets_from_json_rejects_malformed(raw: str) -> None:
    with pytest.raises(ValueError):
        sets_from_json(raw)


@pytest.mark.asyncio
async def test_profile_update(db: AsyncSession) -> None:
    repo = ProfileRepo(db)
    assert await repo.update("ghost", {"age": 30}) is None
    await repo.create("u1", display_name="Ana")
    p = await repo.update("u1", {"age": 30, "sex": "female"})
    assert p is not None
    assert (p.display_name, p.age, p.sex, p.current_phase) == ("Ana", 30, "female", "assessment")


@pytest.mark.asyncio
async def test_daily_log_upsert_merges_fields(db: AsyncSession) -> None:
    repo = DailyLogRepo(db)
    await repo.upsert(user_id="u1", log_date=D0, weight_kg=80.0)
    await repo.upsert(user_id="u1", log_date=D0, steps=9000)
    await repo.upsert(user_id="u1", log_date=D0 - dt.timedelta(days=2), steps=100)
    await repo.upsert(user_id="u2", log_date=D0, steps=1)

    logs = await repo.between("u1", D0 - dt.timedelta(days=7), D0)
    assert [x.log_date for x in logs] == [D0, D0 - dt.timedelta(days=2)]
    assert (logs[0].weight_kg, logs[0].steps, logs[0].workout_completed) == (80.0, 9000, False)
    assert len(await repo.between("u1", D0, D0)) == 1


@pytest.mark.asyncio
async def test_exercise_log_round_trip(db: AsyncSession) -> None:
    repo = ExerciseLogRepo(db)
    await repo.add(user_id="u1", log_date=D0, exercise_name="Squats", sets=[SetRecord(5, 100.0), SetRecord(5, None)])
    await repo.add(user_id="u1", log_date=D0 - dt.timedelta(days=1), exercise_name="Rows", sets=None,
                   completed_sets=3, prescribed_sets=3, prescribed_reps="8-12", prescribed_rir=2)

    logs = await repo.between("u1", D0 - dt.timedelta(days=1), D0)
    assert [x.exercise_name for x in logs] == ["Rows", "Squats"]
    rows, squats = logs
    assert rows.set_details is None
    assert (rows.completed_sets, rows.prescribed_reps, rows.prescribed_rir) == (3, "8-12", 2)
    assert squats.set_details == (SetRecord(5, 100.0), SetRecord(5, None))
    assert squats.completed_sets == 2
