"""
Competition Dashboard - Team Registry Service
Create, list and delete team records
"""

import sqlite3
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from database import ChangeFeed, DatabaseManager, new_record_id
from models import REQUIRED_TEAM_FIELDS, Category, Team, TeamStatus, parse_timestamp, team_number_key, utc_now

REQUIRED_FIELDS = REQUIRED_TEAM_FIELDS


class TeamRegistryService:
    """Team records keyed by store id, looked up by team number"""

    def __init__(self, db_manager: DatabaseManager, feed: Optional[ChangeFeed] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.feed = feed
        self.clock = clock

    def _notify(self):
        if self.feed is not None:
            self.feed.notify()

    def add_team(self, fields: Dict[str, str]) -> Tuple[bool, str, Optional[str]]:
        """Register a new team. Returns (success, message, team_id)"""
        cleaned = {key: str(fields.get(key) or "").strip() for key in REQUIRED_FIELDS}
        missing = [label for key, label in REQUIRED_FIELDS.items() if not cleaned[key]]
        if missing:
            return False, f"Please fill all required fields: {', '.join(missing)}", None

        if cleaned["category"] not in {c.value for c in Category}:
            return False, "Category must be Junior (jr) or Senior (sr)", None

        arrival_time = fields.get("arrival_time") or None
        if arrival_time is not None:
            try:
                arrival_time = parse_timestamp(str(arrival_time)).isoformat()
            except ValueError:
                return False, "Arrival time is not a valid date/time", None

        team = Team(
            id=new_record_id(),
            status=TeamStatus.REGISTERED,
            created_at=self.clock().isoformat(),
            arrival_time=arrival_time,
            check_in_time=None,
            **cleaned,
        )

        conn = self.db_manager.get_connection()
        try:
            conn.execute("""
                INSERT INTO teams (id, team_number, team_name, school_name, student1, student2,
                                   category, status, created_at, arrival_time, check_in_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (team.id, team.team_number, team.team_name, team.school_name, team.student1,
                  team.student2, team.category.value, team.status.value, team.created_at,
                  team.arrival_time, team.check_in_time))
            conn.commit()
        except sqlite3.IntegrityError:
            return False, f"Team number {team.team_number} already exists", None
        except sqlite3.Error:
            logger.exception(f"Error adding team {team.team_number}")
            return False, "Failed to add team. Please try again.", None
        finally:
            conn.close()

        logger.info(f"Team {team.team_number} ({team.team_name}) registered")
        self._notify()
        return True, "Team added successfully!", team.id

    def list_teams(self) -> List[Team]:
        """All teams, ordered by team number"""
        conn = self.db_manager.get_connection()
        try:
            rows = conn.execute("SELECT * FROM teams").fetchall()
        finally:
            conn.close()

        teams = [Team.from_row(row) for row in rows]
        return sorted(teams, key=lambda t: team_number_key(t.team_number))

    def get_team(self, team_id: str) -> Optional[Team]:
        conn = self.db_manager.get_connection()
        try:
            row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
        finally:
            conn.close()
        return Team.from_row(row) if row else None

    def get_team_by_number(self, team_number: str) -> Optional[Team]:
        """Indexed lookup by the natural key"""
        conn = self.db_manager.get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM teams WHERE team_number = ?", ((team_number or "").strip(),)
            ).fetchone()
        finally:
            conn.close()
        return Team.from_row(row) if row else None

    def delete_team(self, team_id: str) -> Tuple[bool, str]:
        """Remove one team record. The caller is responsible for asking the operator first"""
        if not team_id:
            return False, "No team selected"

        conn = self.db_manager.get_connection()
        try:
            cursor = conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))
            conn.commit()
            deleted = cursor.rowcount
        except sqlite3.Error:
            logger.exception(f"Error deleting team {team_id}")
            return False, "Failed to delete team. Please try again."
        finally:
            conn.close()

        if not deleted:
            return False, "Team not found"

        logger.info(f"Team record {team_id} deleted")
        self._notify()
        return True, "Team deleted"

    def set_arrival_time(self, team_id: str, arrival_time: Optional[datetime]) -> Tuple[bool, str]:
        """Schedule (or clear, with None) the time a team is expected at the check-in desk"""
        value = arrival_time.isoformat() if arrival_time is not None else None

        conn = self.db_manager.get_connection()
        try:
            cursor = conn.execute("UPDATE teams SET arrival_time = ? WHERE id = ?", (value, team_id))
            conn.commit()
            updated = cursor.rowcount
        except sqlite3.Error:
            logger.exception(f"Error setting arrival time for team {team_id}")
            return False, "Failed to update arrival time"
        finally:
            conn.close()

        if not updated:
            return False, "Team not found"

        self._notify()
        return True, "Arrival time cleared" if value is None else "Arrival time updated"
