"""
Competition Dashboard - Data Migration System
Imports a legacy hosted-store JSON export or a CSV team roster into the SQLite store
"""

import json
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from models import (CRITERIA, REQUIRED_TEAM_FIELDS, JudgeScore, Team, TeamScore, User,
                    parse_timestamp, utc_now)
from .schema import DatabaseManager, new_record_id

# Roster CSV headers (case-insensitive) -> team fields
ROSTER_COLUMNS = {
    "team number": "team_number",
    "team name": "team_name",
    "school": "school_name",
    "school name": "school_name",
    "student 1": "student1",
    "student 2": "student2",
    "category": "category",
    "arrival time": "arrival_time",
}


def _records(section: Any) -> List[Tuple[str, Any]]:
    """Export sections are keyed by record id; plain lists get fresh ids"""
    if not section:
        return []
    if isinstance(section, Mapping):
        return [(str(key), value) for key, value in section.items()]
    return [(str(item.get("id") or new_record_id()) if isinstance(item, Mapping) else str(index), item)
            for index, item in enumerate(section)]


def _iso(value: Any) -> Any:
    return parse_timestamp(value).isoformat() if value else None


def _local_iso(value: Any) -> Any:
    """Roster times without a zone are the desk's local time"""
    if not value:
        return None
    moment = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.isoformat()


class DataMigration:
    """Legacy data import with an audit trail"""

    def __init__(self, db_manager: DatabaseManager, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.clock = clock
        self.migration_log = []
        self.skipped: List[Dict[str, str]] = []

    def log_migration_step(self, step: str, status: str, details: str = ""):
        """Log migration steps for audit trail"""
        log_entry = {
            "timestamp": self.clock().isoformat(),
            "step": step,
            "status": status,
            "details": details
        }
        self.migration_log.append(log_entry)
        level = {"SUCCESS": "SUCCESS", "ERROR": "ERROR", "WARNING": "WARNING"}.get(status, "INFO")
        logger.log(level, f"{step}: {details}")

    def _skip(self, collection: str, key: str, reason: str):
        self.skipped.append({"collection": collection, "key": key, "reason": reason})
        self.log_migration_step("RECORD_SKIPPED", "WARNING", f"{collection} {key}: {reason}")

    def _mappings(self, collection: str, records):
        """Drop null or malformed entries from an export section"""
        kept = []
        for key, data in records:
            if isinstance(data, Mapping):
                kept.append((key, data))
            else:
                self._skip(collection, key, "not a record")
        return kept

    def import_firebase_export(self, export_path: str) -> bool:
        """
        Import a JSON export of the hosted store: top-level keys teams,
        judgeScores, teamScores and users, each mapping record id -> record.
        Returns True if every section was processed.
        """
        try:
            self.log_migration_step("MIGRATION_START", "INFO", f"Importing {export_path}")
            with open(export_path, "r", encoding="utf-8") as f:
                export = json.load(f)
            if not isinstance(export, Mapping):
                self.log_migration_step("MIGRATION_ERROR", "ERROR", "Export is not a JSON object")
                return False

            self.db_manager.initialize_database()
            backup_path = self.db_manager.backup_database()
            self.log_migration_step("BACKUP_CREATED", "SUCCESS", f"Backup created at {backup_path}")

            now = self.clock()
            self._import_users(self._mappings("users", _records(export.get("users"))))
            self._import_teams(self._mappings("teams", _records(export.get("teams"))), now)
            self._import_judge_scores(self._mappings("judge_scores", _records(export.get("judgeScores"))), now)
            self._import_team_scores(self._mappings("team_scores", _records(export.get("teamScores"))), now)

        except (OSError, json.JSONDecodeError, sqlite3.Error) as e:
            logger.exception(f"Import of {export_path} failed")
            self.log_migration_step("MIGRATION_ERROR", "ERROR", str(e))
            return False

        self.log_migration_step("MIGRATION_COMPLETE", "SUCCESS",
                                f"Import finished, {len(self.skipped)} records skipped")
        return True

    def import_teams_from_csv(self, roster_csv: str) -> bool:
        """Register every team listed in a roster CSV"""
        try:
            roster = pd.read_csv(roster_csv, dtype=str).fillna("")
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            self.log_migration_step("ROSTER_ERROR", "ERROR", str(e))
            return False

        roster = roster.rename(columns=lambda c: ROSTER_COLUMNS.get(str(c).strip().lower(), c))
        if "team_number" not in roster.columns:
            self.log_migration_step("ROSTER_ERROR", "ERROR", "Roster has no 'Team Number' column")
            return False

        self.db_manager.initialize_database()
        now = self.clock()
        records = []
        for index, row in roster.iterrows():
            fields = {name: str(row.get(name, "")).strip() for name in REQUIRED_TEAM_FIELDS}
            key = fields["team_number"] or f"row {index + 2}"
            missing = [label for name, label in REQUIRED_TEAM_FIELDS.items() if not fields[name]]
            if missing:
                self._skip("teams", key, f"missing {', '.join(missing)}")
                continue
            try:
                arrival_time = _local_iso(row.get("arrival_time"))
            except ValueError:
                self._skip("teams", key, f"invalid arrival time {row.get('arrival_time')!r}")
                continue

            category = fields["category"].lower()
            records.append((new_record_id(), {
                "teamNumber": fields["team_number"],
                "teamName": fields["team_name"],
                "schoolName": fields["school_name"],
                "student1": fields["student1"],
                "student2": fields["student2"],
                "category": {"junior": "jr", "senior": "sr"}.get(category, category),
                "arrivalTime": arrival_time,
            }))

        try:
            self._import_teams(records, now)
        except sqlite3.Error as e:
            logger.exception(f"Roster import from {roster_csv} failed")
            self.log_migration_step("ROSTER_ERROR", "ERROR", str(e))
            return False
        return True

    def _insert_all(self, collection: str, items: Iterable[Tuple[str, str, Tuple]]) -> int:
        """Insert rows one by one; rows that hit a uniqueness constraint are reported, not imported"""
        inserted = 0
        conn = self.db_manager.get_connection()
        try:
            for key, sql, params in items:
                try:
                    conn.execute(sql, params)
                    inserted += 1
                except sqlite3.IntegrityError as e:
                    self._skip(collection, key, f"duplicate ({e})")
            conn.commit()
        finally:
            conn.close()
        return inserted

    def _import_users(self, records):
        rows = []
        for uid, data in records:
            try:
                user = User(uid=uid, email=str(data.get("email") or ""), role=data.get("role"),
                            name=str(data.get("name") or ""))
            except ValidationError:
                self._skip("users", uid, f"invalid role {data.get('role')!r}")
                continue
            rows.append((uid, "INSERT INTO users (uid, email, role, name) VALUES (?, ?, ?, ?)",
                         (user.uid, user.email, user.role.value, user.name)))

        count = self._insert_all("users", rows)
        self.log_migration_step("USERS_MIGRATED", "SUCCESS", f"Migrated {count} users")

    def _import_teams(self, records, now: datetime):
        rows = []
        for record_id, data in records:
            try:
                team = Team.from_export(record_id, data, now)
                arrival_time, check_in_time = _iso(team.arrival_time), _iso(team.check_in_time)
            except (ValidationError, ValueError) as e:
                self._skip("teams", str(data.get("teamNumber", record_id)), f"invalid record ({e})")
                continue
            if not team.team_number:
                self._skip("teams", record_id, "missing team number")
                continue

            rows.append((team.team_number, """
                INSERT INTO teams (id, team_number, team_name, school_name, student1, student2,
                                   category, status, created_at, arrival_time, check_in_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (team.id, team.team_number, team.team_name, team.school_name, team.student1,
                  team.student2, team.category.value, team.status.value, team.created_at,
                  arrival_time, check_in_time)))

        count = self._insert_all("teams", rows)
        self.log_migration_step("TEAMS_MIGRATED", "SUCCESS", f"Migrated {count} teams")

    def _import_judge_scores(self, records, now: datetime):
        rows = []
        for record_id, data in records:
            try:
                score = JudgeScore.from_export(record_id, data, now)
                timestamp = _iso(score.timestamp)
            except ValueError as e:
                self._skip("judge_scores", record_id, f"invalid record ({e})")
                continue

            values = score.scores.values()
            rows.append((f"{score.team_number}/{score.judge_id}", f"""
                INSERT INTO judge_scores (id, team_number, judge_id, judge_name,
                                          {', '.join(CRITERIA)}, comments, timestamp)
                VALUES (?, ?, ?, ?, {', '.join('?' for _ in CRITERIA)}, ?, ?)
            """, (score.id, score.team_number, score.judge_id, score.judge_name,
                  *[values[name] for name in CRITERIA], score.comments, timestamp)))

        count = self._insert_all("judge_scores", rows)
        self.log_migration_step("JUDGE_SCORES_MIGRATED", "SUCCESS", f"Migrated {count} judge scores")

    def _import_team_scores(self, records, now: datetime):
        rows = []
        for record_id, data in records:
            try:
                score = TeamScore.from_export(data)
            except (ValidationError, ValueError):
                self._skip("team_scores", record_id, "invalid record")
                continue

            averages = [score.average_scores.get(name, 0.0) for name in CRITERIA]
            rows.append((score.team_number, f"""
                INSERT INTO team_scores (team_number, category, {', '.join(f'avg_{n}' for n in CRITERIA)},
                                         total_score, rank, judge_count, updated_at)
                VALUES ({', '.join('?' for _ in range(len(CRITERIA) + 6))})
            """, (score.team_number, score.category.value, *averages, score.total_score,
                  score.rank, score.judge_count, now.isoformat())))

        count = self._insert_all("team_scores", rows)
        self.log_migration_step("TEAM_SCORES_MIGRATED", "SUCCESS", f"Migrated {count} team scores")

    def get_migration_report(self) -> Dict:
        """Generate comprehensive migration report"""
        return {
            "migration_log": self.migration_log,
            "total_steps": len(self.migration_log),
            "success_count": len([log for log in self.migration_log if log["status"] == "SUCCESS"]),
            "error_count": len([log for log in self.migration_log if log["status"] == "ERROR"]),
            "skipped": self.skipped,
            "database_integrity": self.db_manager.validate_data_integrity()
        }
