from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .enums import Category, TeamStatus, UserRole


CRITERIA = ("criteria1", "criteria2", "criteria3", "criteria4", "criteria5")
MIN_CRITERION_SCORE = 1
MAX_CRITERION_SCORE = 10
DEFAULT_CRITERION_SCORE = 5

# Team fields an operator must supply, with their form labels
REQUIRED_TEAM_FIELDS = {
    "team_name": "Team Name",
    "school_name": "School Name",
    "team_number": "Team Number",
    "student1": "Student 1 Name",
    "student2": "Student 2 Name",
    "category": "Category",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (JavaScript 'Z' suffix included) into an aware datetime."""
    if not value:
        return None
    dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return str(value) if value is not None else ""


class Rubric(BaseModel):
    """The five-criterion scoring form a judge fills in per team."""

    criteria1: int = Field(DEFAULT_CRITERION_SCORE, ge=MIN_CRITERION_SCORE, le=MAX_CRITERION_SCORE)
    criteria2: int = Field(DEFAULT_CRITERION_SCORE, ge=MIN_CRITERION_SCORE, le=MAX_CRITERION_SCORE)
    criteria3: int = Field(DEFAULT_CRITERION_SCORE, ge=MIN_CRITERION_SCORE, le=MAX_CRITERION_SCORE)
    criteria4: int = Field(DEFAULT_CRITERION_SCORE, ge=MIN_CRITERION_SCORE, le=MAX_CRITERION_SCORE)
    criteria5: int = Field(DEFAULT_CRITERION_SCORE, ge=MIN_CRITERION_SCORE, le=MAX_CRITERION_SCORE)

    def values(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in CRITERIA}

    @classmethod
    def from_export(cls, scores: Any) -> "Rubric":
        """Rubric from a legacy score record, which must carry all five criteria"""
        if not isinstance(scores, Mapping):
            raise ValueError("scores missing")
        missing = [name for name in CRITERIA if scores.get(name) is None]
        if missing:
            raise ValueError(f"missing criteria: {', '.join(missing)}")
        return cls(**{name: scores[name] for name in CRITERIA})


class Team(BaseModel):
    """A competing team. `team_number` is the operator-assigned natural key."""

    id: Optional[str] = None
    team_number: str
    team_name: str = ""
    school_name: str = ""
    student1: str = ""
    student2: str = ""
    category: Category = Category.JUNIOR
    status: TeamStatus = TeamStatus.REGISTERED
    created_at: str
    arrival_time: Optional[str] = None
    check_in_time: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Team":
        return cls(**dict(row))

    @classmethod
    def from_export(cls, record_id: str, data: Mapping[str, Any], now: datetime) -> "Team":
        """Build a team from a legacy export record, filling the defaults the old client used."""
        return cls(
            id=record_id,
            team_number=_text(data, "teamNumber").strip(),
            team_name=_text(data, "teamName"),
            school_name=_text(data, "schoolName"),
            student1=_text(data, "student1"),
            student2=_text(data, "student2"),
            category=data.get("category") or Category.JUNIOR,
            status=data.get("status") or TeamStatus.REGISTERED,
            created_at=data.get("createdAt") or now.isoformat(),
            arrival_time=data.get("arrivalTime") or None,
            check_in_time=data.get("checkInTime") or None,
        )


class JudgeScore(BaseModel):
    """One judge's rubric submission for one team. Immutable once stored."""

    id: Optional[str] = None
    team_number: str
    judge_id: str
    judge_name: str = ""
    scores: Rubric = Field(default_factory=Rubric)
    comments: str = ""
    timestamp: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "JudgeScore":
        data = dict(row)
        scores = Rubric(**{name: data.pop(name) for name in CRITERIA})
        return cls(scores=scores, **data)

    @classmethod
    def from_export(cls, record_id: str, data: Mapping[str, Any], now: datetime) -> "JudgeScore":
        return cls(
            id=record_id,
            team_number=_text(data, "teamNumber").strip(),
            judge_id=_text(data, "judgeId"),
            judge_name=_text(data, "judgeName"),
            scores=Rubric.from_export(data.get("scores")),
            comments=_text(data, "comments"),
            timestamp=data.get("timestamp") or now.isoformat(),
        )


class TeamScore(BaseModel):
    """Per-team aggregate of all judges' rubric submissions."""

    team_number: str
    category: Category = Category.JUNIOR
    average_scores: Dict[str, float] = Field(default_factory=dict)
    total_score: float = 0.0
    rank: Optional[int] = None
    judge_count: int = 0
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TeamScore":
        data = dict(row)
        averages = {name: data.pop(f"avg_{name}") for name in CRITERIA}
        return cls(average_scores=averages, **data)

    @classmethod
    def from_export(cls, data: Mapping[str, Any]) -> "TeamScore":
        return cls(
            team_number=_text(data, "teamNumber").strip(),
            category=data.get("category") or Category.JUNIOR,
            average_scores={
                name: float((data.get("averageScores") or {}).get(name, 0))
                for name in CRITERIA
            },
            total_score=float(data.get("totalScore") or 0),
            rank=data.get("rank"),
        )


class User(BaseModel):
    """Role record for a signed-in principal."""

    uid: str
    email: str = ""
    role: UserRole
    name: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(**dict(row))


def team_number_key(team_number: str):
    """Sort key that orders numeric team numbers numerically ("2" before "10")."""
    number = (team_number or "").strip()
    if number.isdigit():
        return (0, int(number), number)
    return (1, 0, number.lower())
