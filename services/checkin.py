"""
Competition Dashboard - Check-In Service
Status transitions at the check-in desk: registered -> waiting -> checked-in
"""

import sqlite3
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from loguru import logger

from database import ChangeFeed, DatabaseManager
from models import Team, TeamStatus, parse_timestamp, utc_now

MSG_NOT_FOUND = "Team not found"
MSG_ALREADY_CHECKED_IN = "Team is already checked in and cannot change status"
MSG_ALREADY_WAITING = "Team is already in waiting area"
MSG_COMPLETED = "Team has completed their competition and cannot change status"
MSG_EARLY = "Team is early. Please send them to the waiting area."
MSG_INVALID_STATUS = "Only check-in and waiting are set at the check-in desk"
MSG_STALE = "Team status changed since it was loaded. Please try again."
MSG_CHECKED_IN = "Team checked in successfully!"
MSG_WAITING = "Team sent to waiting area!"

DESK_STATUSES = (TeamStatus.CHECKED_IN, TeamStatus.WAITING)


def evaluate_transition(team: Team, requested: TeamStatus, now: datetime) -> Optional[str]:
    """Return the reason a transition is refused, or None when it is allowed"""
    if requested not in DESK_STATUSES:
        return MSG_INVALID_STATUS
    if team.status == TeamStatus.CHECKED_IN:
        return MSG_ALREADY_CHECKED_IN
    if team.status == TeamStatus.WAITING and requested == TeamStatus.WAITING:
        return MSG_ALREADY_WAITING
    if team.status == TeamStatus.COMPLETED:
        return MSG_COMPLETED

    if requested == TeamStatus.CHECKED_IN and team.arrival_time:
        arrival = parse_timestamp(team.arrival_time)
        if now < arrival:
            return MSG_EARLY

    return None


def available_actions(status: TeamStatus) -> Dict[str, bool]:
    """Which desk buttons a team row offers"""
    if status == TeamStatus.WAITING:
        return {"can_check_in": True, "can_wait": False}
    if status in (TeamStatus.CHECKED_IN, TeamStatus.COMPLETED):
        return {"can_check_in": False, "can_wait": False}
    return {"can_check_in": True, "can_wait": True}


class CheckInService:
    """Guarded status changes for the check-in desk"""

    def __init__(self, db_manager: DatabaseManager, feed: Optional[ChangeFeed] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.feed = feed
        self.clock = clock

    def update_status(self, team_number: str, requested) -> Tuple[bool, str]:
        """Move a team to waiting or checked-in. Returns (success, message)"""
        try:
            requested = TeamStatus(requested)
        except ValueError:
            return False, MSG_INVALID_STATUS

        team_number = (team_number or "").strip()
        if not team_number:
            return False, "Please enter a team number"

        conn = self.db_manager.get_connection()
        try:
            row = conn.execute("SELECT * FROM teams WHERE team_number = ?", (team_number,)).fetchone()
            if row is None:
                return False, MSG_NOT_FOUND

            team = Team.from_row(row)
            now = self.clock()

            refusal = evaluate_transition(team, requested, now)
            if refusal:
                logger.info(f"Team {team_number}: {team.status.value} -> {requested.value} refused ({refusal})")
                return False, refusal

            check_in_time = now.isoformat() if requested == TeamStatus.CHECKED_IN else team.check_in_time

            # Compare-and-swap on the status we evaluated the guards against
            cursor = conn.execute("""
                UPDATE teams SET status = ?, check_in_time = ?
                WHERE id = ? AND status = ?
            """, (requested.value, check_in_time, team.id, team.status.value))
            conn.commit()

            if cursor.rowcount == 0:
                logger.warning(f"Team {team_number} changed concurrently; check-in write skipped")
                return False, MSG_STALE

        except sqlite3.Error:
            logger.exception(f"Error updating status for team {team_number}")
            return False, "Failed to update team status"
        finally:
            conn.close()

        logger.info(f"Team {team_number}: {team.status.value} -> {requested.value}")
        if self.feed is not None:
            self.feed.notify()

        return True, MSG_CHECKED_IN if requested == TeamStatus.CHECKED_IN else MSG_WAITING

    def compare_and_set_status(self, team_id: str, expected, new_status) -> bool:
        """Conditional status write used by tooling; True when the expected status still held"""
        conn = self.db_manager.get_connection()
        try:
            cursor = conn.execute(
                "UPDATE teams SET status = ? WHERE id = ? AND status = ?",
                (TeamStatus(new_status).value, team_id, TeamStatus(expected).value)
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()
