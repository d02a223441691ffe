from datetime import timedelta, timezone
from io import BytesIO

import gspread
import pandas as pd
import pytest

from models import Category, Team, TeamScore, TeamStatus
from services import ReportingService
from services import reporting as reporting_module
from services.reporting import DEFAULT_SHEET_NAME, EXPORT_COLUMNS, format_local_time

from conftest import NOW


def make_team(number, **overrides):
    fields = {
        "id": f"id-{number}",
        "team_number": number,
        "team_name": f"Team {number}",
        "school_name": "Riverside High",
        "student1": "Ana",
        "student2": "Ben",
        "category": Category.JUNIOR,
        "status": TeamStatus.REGISTERED,
        "created_at": NOW.isoformat(),
    }
    fields.update(overrides)
    return Team(**fields)


@pytest.fixture
def reporting():
    return ReportingService(tz=timezone.utc)


@pytest.fixture
def results(reporting):
    teams = [
        make_team("1", status=TeamStatus.COMPLETED, check_in_time="2025-03-01T14:05:09+00:00"),
        make_team("2", category=Category.SENIOR, arrival_time="2025-03-01T15:00:00Z"),
    ]
    scores = [TeamScore(team_number="1", category=Category.JUNIOR, total_score=41.5, rank=1, judge_count=2)]
    return reporting.build_results_table(teams, scores)


def test_status_counts(reporting):
    teams = [
        make_team("1"),
        make_team("2", category=Category.SENIOR, status=TeamStatus.WAITING),
        make_team("3", status=TeamStatus.CHECKED_IN),
        make_team("4", category=Category.SENIOR, status=TeamStatus.COMPLETED),
        make_team("5", status=TeamStatus.CHECKED_IN),
    ]

    assert reporting.get_status_counts(teams) == {
        "total": 5,
        "jr": 3,
        "sr": 2,
        "registered": 1,
        "waiting": 1,
        "checked-in": 2,
        "completed": 1,
    }


def test_status_counts_empty(reporting):
    counts = reporting.get_status_counts([])

    assert counts["total"] == 0
    assert set(counts.values()) == {0}


def test_results_table(results):
    assert list(results.columns) == EXPORT_COLUMNS
    assert len(results) == 2

    matched = results.iloc[0]
    assert matched["Team Number"] == "1"
    assert matched["Category"] == "JR"
    assert matched["Status"] == "completed"
    assert matched["Check-in Time"] == "14:05:09"
    assert matched["Arrival Time"] == "-"
    assert matched["Total Score"] == 41.5
    assert matched["Rank"] == 1

    unmatched = results.iloc[1]
    assert unmatched["Category"] == "SR"
    assert unmatched["Arrival Time"] == "15:00:00"
    assert unmatched["Check-in Time"] == "-"
    assert unmatched["Total Score"] == "-"
    assert unmatched["Rank"] == "-"


def test_results_table_uses_first_aggregate(reporting):
    scores = [
        TeamScore(team_number="1", total_score=30.0, rank=2),
        TeamScore(team_number="1", total_score=45.0, rank=1),
    ]

    table = reporting.build_results_table([make_team("1")], scores)

    assert table.iloc[0]["Total Score"] == 30.0
    assert table.iloc[0]["Rank"] == 2


def test_results_table_missing_category(reporting):
    team = Team.model_construct(
        id="id-9", team_number="9", team_name="Loose", school_name="Hill", student1="", student2="",
        category=None, status=TeamStatus.REGISTERED, created_at=NOW.isoformat(),
        arrival_time=None, check_in_time=None,
    )

    table = reporting.build_results_table([team], [])

    assert table.iloc[0]["Category"] == "N/A"


def test_format_local_time():
    assert format_local_time(None) == "-"
    assert format_local_time("") == "-"
    assert format_local_time("2025-03-01T14:05:09Z", timezone(timedelta(hours=8))) == "22:05:09"


def test_export_to_excel(reporting, results):
    data = reporting.export_to_excel(results)

    sheets = pd.read_excel(BytesIO(data), sheet_name=None, dtype=str)
    assert list(sheets) == [DEFAULT_SHEET_NAME]
    sheet = sheets[DEFAULT_SHEET_NAME]
    assert list(sheet.columns) == EXPORT_COLUMNS
    assert sheet["Team Number"].tolist() == ["1", "2"]
    assert sheet["Rank"].tolist() == ["1", "-"]
    assert sheet["Total Score"].tolist() == ["41.5", "-"]


class FakeWorksheet:
    def __init__(self):
        self.calls = []

    def clear(self):
        self.calls.append(("clear",))

    def update(self, values, range_name):
        self.calls.append(("update", values, range_name))


class FakeClient:
    def __init__(self, worksheet):
        self.worksheet = worksheet
        self.opened = []

    def open_by_key(self, key):
        self.opened.append(key)
        return type("Spreadsheet", (), {"sheet1": self.worksheet})()


def test_export_to_google_sheets(reporting, results, monkeypatch):
    worksheet = FakeWorksheet()
    client = FakeClient(worksheet)
    monkeypatch.setattr(reporting_module.Credentials, "from_service_account_info",
                        lambda info, scopes: ("credentials", scopes))
    monkeypatch.setattr(reporting_module.gspread, "authorize", lambda credentials: client)

    ok, message = reporting.export_to_google_sheets(results, "sheet-key", {"client_email": "bot@x"})

    assert ok
    assert message == "Published 2 teams to Google Sheets"
    assert client.opened == ["sheet-key"]
    assert worksheet.calls[0] == ("clear",)
    _, values, range_name = worksheet.calls[1]
    assert range_name == "A1"
    assert values[0] == EXPORT_COLUMNS
    assert values[2][-2:] == ["-", "-"]


def test_export_to_google_sheets_failure(reporting, results, monkeypatch):
    def refuse(info, scopes):
        raise gspread.exceptions.GSpreadException("no access")

    monkeypatch.setattr(reporting_module.Credentials, "from_service_account_info", refuse)

    assert reporting.export_to_google_sheets(results, "sheet-key", {}) == (
        False, "Failed to publish results to Google Sheets"
    )


def test_export_to_google_sheets_requires_key(reporting, results):
    assert reporting.export_to_google_sheets(results, "", {}) == (False, "No Google Sheet configured")


def test_status_chart(reporting):
    counts = reporting.get_status_counts([make_team("1"), make_team("2", status=TeamStatus.WAITING)])

    fig = reporting.build_status_chart(counts)

    assert fig.layout.title.text == "Teams by Status"
    bars = {trace.name: list(trace.y) for trace in fig.data}
    assert bars["registered"] == [1]
    assert bars["waiting"] == [1]
    assert bars["completed"] == [0]
