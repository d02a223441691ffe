#!/usr/bin/env python3
"""
Score verification for the Competition Dashboard
Recomputes team scores from judge submissions and reports inconsistencies
"""

import argparse
import sys

from config import settings, setup_logging
from database import DatabaseManager
from models import TeamStatus
from services import ScoringService, TeamRegistryService


def verify_scores(db_path=settings.db_path, min_judges=1):
    """Print a consistency report. Returns True when no problems were found"""
    db_manager = DatabaseManager(db_path)
    db_manager.initialize_database()
    registry = TeamRegistryService(db_manager)
    scoring = ScoringService(db_manager)

    success, message, _ = scoring.recalculate_team_scores()
    print(f"{'✅' if success else '❌'} {message}")
    if not success:
        return False

    teams = {team.team_number: team for team in registry.list_teams()}
    team_scores = {score.team_number: score for score in scoring.get_team_scores()}
    judge_scores = scoring.get_judge_scores()

    print("🏆 SCORE VERIFICATION")
    print("=" * 50)

    problems = []

    completed = {n for n, team in teams.items() if team.status == TeamStatus.COMPLETED}
    scored = {score.team_number for score in judge_scores}

    for number in sorted(completed - scored):
        problems.append(f"Team {number} is completed but has no judge scores")
    for number in sorted(scored - set(teams)):
        problems.append(f"Scores exist for unknown team {number}")
    for number in sorted((scored & set(teams)) - completed):
        problems.append(f"Team {number} has scores but status is {teams[number].status.value}")

    for number, score in team_scores.items():
        if score.judge_count < min_judges:
            problems.append(f"Team {number} has {score.judge_count} judge(s), expected at least {min_judges}")

    print(f"\n📊 Summary:")
    print(f"  Teams: {len(teams)}")
    print(f"  Completed: {len(completed)}")
    print(f"  Judge submissions: {len(judge_scores)}")
    print(f"  Teams with aggregates: {len(team_scores)}")

    for category in sorted({score.category.value for score in team_scores.values()}):
        print(f"\n🥇 Top teams ({category.upper()}):")
        ranked = sorted(
            (s for s in team_scores.values() if s.category.value == category),
            key=lambda s: (s.rank, s.team_number)
        )
        for score in ranked[:5]:
            print(f"  #{score.rank} Team {score.team_number}: {score.total_score:.2f} "
                  f"({score.judge_count} judge{'s' if score.judge_count != 1 else ''})")

    if problems:
        print(f"\n⚠️ {len(problems)} problem(s) found:")
        for problem in problems:
            print(f"  - {problem}")
    else:
        print("\n✅ Scores are consistent")

    return not problems


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Recompute team scores and check them against team statuses",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", default=settings.db_path, help="SQLite database file path (env: DB_PATH)")
    parser.add_argument("--min-judges", type=int, default=1, help="Judges each scored team should have")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    return 0 if verify_scores(args.db, args.min_judges) else 1


if __name__ == "__main__":
    sys.exit(main())
