"""
ORM models.

Usage:
    from app.models import Team, MatchRecord
"""

from app.models.models import (
    Base,
    Tournament,
    Team,
    MatchRecord,
    AccessCode,
    AnalysisStatus,
    Role,
    utcnow,
)

__all__ = [
    "Base",
    "Tournament",
    "Team",
    "MatchRecord",
    "AccessCode",
    "AnalysisStatus",
    "Role",
    "utcnow",
]
