"""
Database models for the PUBG Tournament Leaderboard API.

Team aggregate columns are a cache of the team's match records; they are
only ever written by TeamStatsService.recalculate (or an explicit admin
reset) and never patched incrementally.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the `timestamp without time zone` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AnalysisStatus:
    """Lifecycle of a match record's placement/kills values."""
    PENDING = "pending"            # screenshot stored, extraction not yet attempted
    ANALYZED = "analyzed"          # values came from the AI extraction
    NEEDS_REVIEW = "needs_review"  # extraction failed, admin must verify manually
    MANUAL = "manual"              # values entered or corrected by an admin


class Role:
    ADMIN = "admin"
    PLAYER = "player"


class Tournament(Base):
    """A tournament groups teams competing over a fixed number of matches."""
    __tablename__ = "tournaments"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    total_matches = Column(Integer, nullable=False, default=6)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    teams = relationship("Team", back_populates="tournament", cascade="all, delete-orphan")


class Team(Base):
    """Team with cached aggregate scoring fields derived from its match records."""
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    tournament_id = Column(String(36), ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    logo_url = Column(Text, nullable=True)

    # Derived aggregates
    total_points = Column(Integer, nullable=False, default=0)
    placement_points = Column(Integer, nullable=False, default=0)
    kill_points = Column(Integer, nullable=False, default=0)
    total_kills = Column(Integer, nullable=False, default=0)
    matches_played = Column(Integer, nullable=False, default=0)
    first_place_wins = Column(Integer, nullable=False, default=0)
    stats_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    tournament = relationship("Tournament", back_populates="teams")
    match_records = relationship(
        "MatchRecord",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("name", "tournament_id", name="uq_teams_name_tournament"),
    )


class MatchRecord(Base):
    """
    One submitted or verified match result for a team.

    `points` is denormalised at write time so stored history does not move
    if the placement table ever changes.
    """
    __tablename__ = "match_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    match_number = Column(Integer, nullable=True)  # not unique, see MatchRecordService
    placement = Column(Integer, nullable=True)  # 1-18, null until analyzed/verified
    kills = Column(Integer, nullable=True)
    points = Column(Integer, nullable=True)
    screenshot_url = Column(Text, nullable=True)  # null for manual admin entries
    analysis_status = Column(String(20), nullable=False, default=AnalysisStatus.PENDING, index=True)
    analysis_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    team = relationship("Team", back_populates="match_records")

    __table_args__ = (
        CheckConstraint("placement IS NULL OR (placement >= 1 AND placement <= 18)", name="ck_match_records_placement"),
        CheckConstraint("kills IS NULL OR kills >= 0", name="ck_match_records_kills"),
        Index("ix_match_records_team_match", "team_id", "match_number"),
    )


class AccessCode(Base):
    """Bearer code that resolves to a role (and team, for players)."""
    __tablename__ = "access_codes"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(64), unique=True, nullable=False, index=True)
    role = Column(String(10), nullable=False)  # admin, player
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
