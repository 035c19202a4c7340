from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.notifications import NotificationService, weight_milestone
from vitalpath.repositories import DailyLogRepo, NotificationRepo, ProfileRepo
from vitalpath.timeutil import today_in


@pytest.mark.parametrize(
    "lost,expected",
    [(1.0, None), (2.5, 2.5), (2.6, 2.5), (2.9, 2.5), (3.1, None), (5.2, 5.0), (7.6, 7.5)],
)
def test_weight_milestone_window(lost: float, expected: float | None) -> None:
    assert weight_milestone(lost) == expected


@pytest.mark.asyncio
async def test_templates(db: AsyncSession) -> None:
    svc = NotificationService(db)
    await svc.phase_ready_for_transition("u1", "recovery", "recomp")
    await svc.phase_transition_complete("u1", "recomp")

    notes = await NotificationRepo(db).for_user("u1")
    assert [n.title for n in notes] == ["Phase Transition Complete", "Ready for Next Phase?"]
    assert "Body Recomposition" in notes[0].message
    assert notes[1].action_url == "/chat"
    assert all(not n.is_read for n in notes)


@pytest.mark.asyncio
async def test_check_requires_onboarding(db: AsyncSession) -> None:
    svc = NotificationService(db)
    assert await svc.check_and_send_notifications("ghost") == []
    await ProfileRepo(db).create("u1")
    assert await svc.check_and_send_notifications("u1") == []


@pytest.mark.asyncio
async def test_check_sends_streak_protein_and_weight(db: AsyncSession) -> None:
    today = today_in(None)
    await ProfileRepo(db).create(
        "u1", onboarding_completed=True, protein_grams=140, current_weight_kg=80.0, target_weight_kg=70.0
    )
    logs = DailyLogRepo(db)
    for i in range(7):
        await logs.upsert(user_id="u1", log_date=today - dt.timedelta(days=i), weight_kg=78.0)
    await logs.upsert(user_id="u1", log_date=today, weight_kg=77.4, protein_grams=150.0)

    sent = await NotificationService(db).check_and_send_notifications("u1")
    assert [n.title for n in sent] == ["7-Day Streak!", "Protein Target Hit!", "Weight Milestone Reached!"]
    assert "2.5kg" in sent[-1].message


@pytest.mark.asyncio
async def test_check_stays_quiet_without_milestones(db: AsyncSession) -> None:
    today = today_in(None)
    await ProfileRepo(db).create("u1", onboarding_completed=True, protein_grams=140)
    logs = DailyLogRepo(db)
    for i in range(3):
        await logs.upsert(user_id="u1", log_date=today - dt.timedelta(days=i), protein_grams=90.0)

    assert await NotificationService(db).check_and_send_notifications("u1") == []
