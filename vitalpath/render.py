from __future__ import annotations

from typing import Any

from tabulate import tabulate

from vitalpath.analytics import WorkoutAnalytics
from vitalpath.phase import PhaseEvaluation


def multiplier_line(summary: dict[str, Any]) -> str:
    nxt = summary.get("next_multiplier_info")
    line = f"Streak: {summary['current_streak']} days | x{summary['current_multiplier']:g}"
    if nxt:
        line += f" (x{nxt['next_multiplier']:g} in {nxt['days_until']} days)"
    return line


def points_report(summary: dict[str, Any]) -> str:
    rows = [
        ["Lifetime", summary["lifetime_points"]],
        ["Spendable", summary["spendable_points"]],
        ["Today", summary["daily_points"]],
        ["This week", summary["weekly_points"]],
        ["This month", summary["monthly_points"]],
        ["Longest streak", summary["longest_streak"]],
    ]
    return multiplier_line(summary) + "\n\n" + tabulate(rows, tablefmt="github")


def leaderboard_table(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return "No rankings yet"
    return tabulate(
        [[r["rank"], r.get("display_name") or r["user_id"], r["points"]] for r in rows],
        headers=["#", "User", "Points"],
        tablefmt="github",
    )


def phase_report(ev: PhaseEvaluation) -> str:
    m = ev.metrics
    rows = [
        ["Phase", ev.current_phase],
        ["Weeks in phase", ev.weeks_in_phase],
        ["Biofeedback", f"{ev.biofeedback_score:.1f}/10"],
        ["Weight trend", m.weight_trend],
        ["Calorie adherence", f"{m.calorie_adherence:.0f}%"],
        ["Ready", "yes -> " + ev.suggested_phase if ev.ready_for_transition and ev.suggested_phase else "no"],
    ]
    return tabulate(rows, tablefmt="github") + "\n\n" + ev.reason


def analytics_report(a: WorkoutAnalytics) -> str:
    s = a.summary
    head = (
        f"Workouts: {s.total_workouts} total | {s.workouts_this_week} this week | "
        f"{s.workouts_this_month} this month | {s.average_workouts_per_week:g}/week\n"
        f"Favorite: {s.favorite_workout_type} | Volume: {s.total_volume_kg} kg\n"
        f"Streak: {a.streaks.current_streak} current, {a.streaks.longest_streak} longest"
    )
    weeks = tabulate(
        [[w.week_label, w.workout_count, round(w.total_volume), w.avg_duration] for w in a.weekly_trends],
        headers=["Week", "Workouts", "Volume", "Avg min"],
        tablefmt="github",
    )
    parts = [head, weeks]
    if a.exercise_progress:
        parts.append(
            tabulate(
                [[p.exercise_name, p.best_weight, p.best_reps, p.total_sets, p.trend] for p in a.exercise_progress],
                headers=["Exercise", "Best kg", "Best reps", "Sets", "Trend"],
                tablefmt="github",
            )
        )
    return "\n\n".join(parts)
