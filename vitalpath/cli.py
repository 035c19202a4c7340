from __future__ import annotations

import argparse
import asyncio

from vitalpath.analytics import WorkoutAnalyticsService
from vitalpath.db import SessionLocal
from vitalpath.init_db import init_db
from vitalpath.logs import setup_logging
from vitalpath.notifications import NotificationService
from vitalpath.phase import PhaseService
from vitalpath.points import PointsService
from vitalpath.render import analytics_report, leaderboard_table, phase_report, points_report


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vitalpath", description="VitalPath coaching engine")
    p.add_argument("--log-level", default=None)
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables")

    ev = sub.add_parser("evaluate-phase", help="evaluate (and optionally execute) a phase transition")
    ev.add_argument("user_id")
    ev.add_argument("--execute", action="store_true")

    pt = sub.add_parser("points", help="points summary for a user")
    pt.add_argument("user_id")

    an = sub.add_parser("analytics", help="workout analytics for a user")
    an.add_argument("user_id")
    an.add_argument("--days", type=int, default=None)

    lb = sub.add_parser("leaderboard", help="points leaderboard")
    lb.add_argument("period", choices=["daily", "weekly", "monthly"])
    lb.add_argument("--limit", type=int, default=None)

    rp = sub.add_parser("reset-period", help="zero period points for every user")
    rp.add_argument("period", choices=["daily", "weekly", "monthly"])
    return p


async def run(args: argparse.Namespace) -> str:
    if args.command == "init-db":
        await init_db()
        return "Database initialised"

    async with SessionLocal() as db:
        if args.command == "evaluate-phase":
            svc = PhaseService(db)
            if args.execute:
                ev, profile = await svc.evaluate_and_transition(args.user_id)
            else:
                ev, profile = await svc.evaluate_phase_transition(args.user_id), None
                if ev.ready_for_transition and ev.suggested_phase:
                    await NotificationService(db).phase_ready_for_transition(
                        args.user_id, ev.current_phase, ev.suggested_phase
                    )
            await db.commit()
            out = phase_report(ev)
            if profile is not None:
                out += f"\n\nMoved to {profile.current_phase}: {profile.target_calories} kcal"
            return out

        if args.command == "analytics":
            a = await WorkoutAnalyticsService(db).generate(args.user_id, days=args.days)
            return analytics_report(a)

        if args.command == "points":
            return points_report(await PointsService(db).get_points_summary(args.user_id))

        if args.command == "leaderboard":
            rows = await PointsService(db).get_leaderboard(args.period, args.limit)
            return leaderboard_table(rows)

        if args.command == "reset-period":
            n = await PointsService(db).reset_period_points(args.period)
            await db.commit()
            return f"Reset {args.period} points for {n} users"

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    print(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
