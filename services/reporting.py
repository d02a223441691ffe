"""
Competition Dashboard - Reporting Service
Status counts, the results table and its Excel / Google Sheets exports
"""

from datetime import tzinfo
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import gspread
import pandas as pd
import plotly.express as px
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from loguru import logger

from models import Category, Team, TeamScore, TeamStatus, parse_timestamp

EXPORT_COLUMNS = [
    "Team Number", "Team Name", "Category", "School", "Status",
    "Arrival Time", "Check-in Time", "Total Score", "Rank",
]
DEFAULT_EXPORT_FILENAME = "bridge-building-competition-results.xlsx"
DEFAULT_SHEET_NAME = "Competition Results"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
MISSING = "-"


def format_local_time(value: Optional[str], tz: Optional[tzinfo] = None) -> str:
    """HH:MM:SS in the given zone (the machine's local zone by default), '-' when unset"""
    moment = parse_timestamp(value)
    if moment is None:
        return MISSING
    return moment.astimezone(tz).strftime("%H:%M:%S")


class ReportingService:
    """Read-only summaries over teams and score aggregates"""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz

    def get_status_counts(self, teams: Iterable[Team]) -> Dict[str, int]:
        """Team counts by category and by status"""
        counts = {
            "total": 0,
            Category.JUNIOR.value: 0,
            Category.SENIOR.value: 0,
            **{status.value: 0 for status in TeamStatus},
        }
        for team in teams:
            counts["total"] += 1
            counts[team.category.value] += 1
            counts[team.status.value] += 1
        return counts

    def build_results_table(self, teams: Iterable[Team], team_scores: Iterable[TeamScore]) -> pd.DataFrame:
        """One row per team, joined to the first aggregate seen for its team number"""
        by_number: Dict[str, TeamScore] = {}
        for score in team_scores:
            by_number.setdefault(score.team_number, score)

        rows: List[Dict[str, Any]] = []
        for team in teams:
            score = by_number.get(team.team_number)
            category = team.category.value if team.category else ""
            rows.append({
                "Team Number": team.team_number,
                "Team Name": team.team_name,
                "Category": category.upper() if category else "N/A",
                "School": team.school_name,
                "Status": team.status.value,
                "Arrival Time": format_local_time(team.arrival_time, self.tz),
                "Check-in Time": format_local_time(team.check_in_time, self.tz),
                "Total Score": score.total_score if score is not None else MISSING,
                "Rank": score.rank if score is not None and score.rank is not None else MISSING,
            })

        return pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    def export_to_excel(self, table: pd.DataFrame, sheet_name: str = DEFAULT_SHEET_NAME) -> bytes:
        """Render the results table as an .xlsx workbook with a single sheet"""
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            table.to_excel(writer, sheet_name=sheet_name, index=False)
        logger.info(f"Exported {len(table)} rows to Excel")
        return buffer.getvalue()

    def export_to_google_sheets(self, table: pd.DataFrame, sheet_key: str,
                                credentials_info: Mapping[str, Any]) -> Tuple[bool, str]:
        """Replace the first worksheet of a Google Sheet with the results table"""
        if not sheet_key:
            return False, "No Google Sheet configured"

        values = [list(table.columns)] + table.astype(str).values.tolist()
        try:
            credentials = Credentials.from_service_account_info(dict(credentials_info), scopes=SCOPES)
            gc = gspread.authorize(credentials)
            worksheet = gc.open_by_key(sheet_key).sheet1
            worksheet.clear()
            worksheet.update(values, "A1")
        except (gspread.exceptions.GSpreadException, GoogleAuthError, ValueError):
            logger.exception(f"Error publishing results to sheet {sheet_key}")
            return False, "Failed to publish results to Google Sheets"

        logger.info(f"Published {len(table)} rows to Google Sheet {sheet_key}")
        return True, f"Published {len(table)} teams to Google Sheets"

    def build_status_chart(self, counts: Mapping[str, int]):
        data = pd.DataFrame({
            "Status": [status.value for status in TeamStatus],
            "Teams": [counts.get(status.value, 0) for status in TeamStatus],
        })
        fig = px.bar(data, x="Status", y="Teams", title="Teams by Status", color="Status")
        fig.update_layout(showlegend=False)
        return fig

