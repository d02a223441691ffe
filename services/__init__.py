"""
Competition Dashboard Services Package
Identity, registry, check-in, scoring and reporting services used by the views
"""

from .identity import IdentityGate, IdentityProvider, Principal, Session
from .registry import TeamRegistryService
from .checkin import CheckInService
from .scoring import ScoringService
from .reporting import ReportingService

__all__ = [
    'IdentityGate', 'IdentityProvider', 'Principal', 'Session',
    'TeamRegistryService', 'CheckInService', 'ScoringService', 'ReportingService',
]
