"""
Competition Dashboard Models Package
Typed records for teams, judge scores, team score aggregates and users
"""

from .enums import TeamStatus, Category, UserRole
from .records import (
    CRITERIA,
    DEFAULT_CRITERION_SCORE,
    MIN_CRITERION_SCORE,
    MAX_CRITERION_SCORE,
    REQUIRED_TEAM_FIELDS,
    Rubric,
    Team,
    JudgeScore,
    TeamScore,
    User,
    utc_now,
    parse_timestamp,
    team_number_key,
)

__all__ = [
    'TeamStatus', 'Category', 'UserRole',
    'CRITERIA', 'DEFAULT_CRITERION_SCORE', 'MIN_CRITERION_SCORE', 'MAX_CRITERION_SCORE', 'REQUIRED_TEAM_FIELDS',
    'Rubric', 'Team', 'JudgeScore', 'TeamScore', 'User',
    'utc_now', 'parse_timestamp', 'team_number_key',
]
