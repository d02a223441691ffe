"""
Competition Dashboard - Scoring Service
Judge rubric submissions and per-team score aggregation
"""

import sqlite3
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from database import ChangeFeed, DatabaseManager, new_record_id
from models import CRITERIA, JudgeScore, Rubric, Team, TeamScore, TeamStatus, User, utc_now

MSG_ALREADY_SCORED = "You have already scored this team"
MSG_NOT_FOUND = "Team not found"
MSG_SUBMITTED = "Score submitted successfully!"


class ScoringService:
    """Rubric submissions and the team score batch job"""

    def __init__(self, db_manager: DatabaseManager, feed: Optional[ChangeFeed] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.feed = feed
        self.clock = clock

    def find_team(self, team_number: str, judge: User) -> Tuple[Optional[Team], str]:
        """Look up a team for a judge. Returns (team, message); team is None when it can't be scored"""
        team_number = (team_number or "").strip()
        if not team_number:
            return None, "Please enter a team number"

        conn = self.db_manager.get_connection()
        try:
            row = conn.execute("SELECT * FROM teams WHERE team_number = ?", (team_number,)).fetchone()
            if row is None:
                return None, MSG_NOT_FOUND

            existing = conn.execute(
                "SELECT 1 FROM judge_scores WHERE team_number = ? AND judge_id = ?",
                (team_number, judge.uid)
            ).fetchone()
        except sqlite3.Error:
            logger.exception(f"Error looking up team {team_number}")
            return None, "Failed to search for team"
        finally:
            conn.close()

        if existing:
            return None, MSG_ALREADY_SCORED

        return Team.from_row(row), f"Team {team_number} found"

    def submit_score(self, team: Team, judge: User, rubric, comments: str = "") -> Tuple[bool, str]:
        """Store a judge's rubric and mark the team completed, atomically"""
        if not isinstance(rubric, Rubric):
            try:
                rubric = Rubric(**dict(rubric))
            except ValidationError:
                return False, "Each criterion must be scored between 1 and 10"

        score = JudgeScore(
            id=new_record_id(),
            team_number=team.team_number,
            judge_id=judge.uid,
            judge_name=judge.name or judge.email,
            scores=rubric,
            comments=(comments or "").strip(),
            timestamp=self.clock().isoformat(),
        )
        values = rubric.values()

        conn = self.db_manager.get_connection()
        try:
            with conn:
                conn.execute(f"""
                    INSERT INTO judge_scores (id, team_number, judge_id, judge_name,
                                              {', '.join(CRITERIA)}, comments, timestamp)
                    VALUES (?, ?, ?, ?, {', '.join('?' for _ in CRITERIA)}, ?, ?)
                """, (score.id, score.team_number, score.judge_id, score.judge_name,
                      *[values[name] for name in CRITERIA], score.comments, score.timestamp))

                # Only the status column; the rest of the team record is never rewritten here
                cursor = conn.execute(
                    "UPDATE teams SET status = ? WHERE team_number = ?",
                    (TeamStatus.COMPLETED.value, score.team_number)
                )
                if cursor.rowcount == 0:
                    raise LookupError(score.team_number)
        except sqlite3.IntegrityError:
            logger.info(f"Duplicate score from {judge.email} for team {team.team_number} rejected")
            return False, MSG_ALREADY_SCORED
        except LookupError:
            logger.warning(f"Team {team.team_number} disappeared before the score was stored")
            return False, MSG_NOT_FOUND
        except sqlite3.Error:
            logger.exception(f"Error submitting score for team {team.team_number}")
            return False, "Failed to submit score. Please try again."
        finally:
            conn.close()

        logger.info(f"{score.judge_name} scored team {score.team_number}: {sum(values.values())} points")
        if self.feed is not None:
            self.feed.notify()
        return True, MSG_SUBMITTED

    def get_judge_scores(self, team_number: Optional[str] = None) -> List[JudgeScore]:
        conn = self.db_manager.get_connection()
        try:
            if team_number is None:
                rows = conn.execute("SELECT * FROM judge_scores ORDER BY timestamp").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM judge_scores WHERE team_number = ? ORDER BY timestamp",
                    (team_number.strip(),)
                ).fetchall()
        finally:
            conn.close()
        return [JudgeScore.from_row(row) for row in rows]

    def get_team_scores(self) -> List[TeamScore]:
        conn = self.db_manager.get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM team_scores ORDER BY category, rank, team_number"
            ).fetchall()
        finally:
            conn.close()
        return [TeamScore.from_row(row) for row in rows]

    def compute_team_scores(self) -> pd.DataFrame:
        """Average every criterion per team and rank within category.

        Ties share the better rank (1, 2, 2, 4). Scores whose team record no
        longer exists have no category and are left out.
        """
        conn = self.db_manager.get_connection()
        try:
            scores = pd.read_sql_query("SELECT * FROM judge_scores", conn)
            teams = pd.read_sql_query("SELECT team_number, category FROM teams", conn)
        finally:
            conn.close()

        columns = ["team_number", "category", *[f"avg_{name}" for name in CRITERIA],
                   "total_score", "rank", "judge_count"]
        if scores.empty:
            return pd.DataFrame(columns=columns)

        grouped = scores.groupby("team_number")
        summary = grouped[list(CRITERIA)].mean().round(2)
        summary.columns = [f"avg_{name}" for name in CRITERIA]
        summary["total_score"] = summary.sum(axis=1).round(2)
        summary["judge_count"] = grouped.size()
        summary = summary.reset_index()

        summary = summary.merge(teams.drop_duplicates("team_number"), on="team_number", how="left")
        orphans = summary[summary["category"].isna()]["team_number"].tolist()
        if orphans:
            logger.warning(f"Scores for unknown teams left out of ranking: {', '.join(orphans)}")
        summary = summary[summary["category"].notna()].copy()

        summary["rank"] = (
            summary.groupby("category")["total_score"]
            .rank(method="min", ascending=False)
            .astype(int)
        )
        return summary[columns].sort_values(["category", "rank", "team_number"]).reset_index(drop=True)

    def recalculate_team_scores(self) -> Tuple[bool, str, int]:
        """Rebuild the team_scores collection from all judge submissions"""
        try:
            summary = self.compute_team_scores()
        except sqlite3.Error:
            logger.exception("Error reading scores for recalculation")
            return False, "Failed to recalculate team scores", 0

        updated_at = self.clock().isoformat()
        rows = [
            (r["team_number"], r["category"], *[float(r[f"avg_{name}"]) for name in CRITERIA],
             float(r["total_score"]), int(r["rank"]), int(r["judge_count"]), updated_at)
            for r in summary.to_dict("records")
        ]

        conn = self.db_manager.get_connection()
        try:
            with conn:
                conn.execute("DELETE FROM team_scores")
                conn.executemany(f"""
                    INSERT INTO team_scores (team_number, category, {', '.join(f'avg_{n}' for n in CRITERIA)},
                                             total_score, rank, judge_count, updated_at)
                    VALUES ({', '.join('?' for _ in range(len(CRITERIA) + 6))})
                """, rows)
        except sqlite3.Error:
            logger.exception("Error writing team scores")
            return False, "Failed to recalculate team scores", 0
        finally:
            conn.close()

        logger.info(f"Recalculated scores for {len(rows)} teams")
        if self.feed is not None:
            self.feed.notify()
        return True, f"Recalculated scores for {len(rows)} teams", len(rows)

    def get_judge_summary(self) -> Dict[str, int]:
        """Number of submissions per judge"""
        conn = self.db_manager.get_connection()
        try:
            rows = conn.execute("""
                SELECT judge_name, COUNT(*) AS submissions
                FROM judge_scores
                GROUP BY judge_id, judge_name
                ORDER BY submissions DESC, judge_name
            """).fetchall()
        finally:
            conn.close()
        return {row["judge_name"]: row["submissions"] for row in rows}
