from sqlalchemy.orm import relationship
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base

# Players per team (and per queue entry) for each match type.
TEAM_SIZES = {"singles": 1, "doubles": 2}


class User(Base):
    __tablename__ = "user"
    id = Column(String, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default="staff")  # "admin" | "staff"
    # Admin account a staff user operates for; admins own themselves.
    owner_id = Column(String, ForeignKey("user.id"), nullable=True)

    @property
    def scope_id(self) -> str:
        return self.owner_id or self.id


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=False)
    nickname = Column(String, nullable=True)
    created_by = Column(String, ForeignKey("user.id"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class Rotation(Base):
    __tablename__ = "rotation"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="draft")  # draft | open | closed
    return_to_queue = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, ForeignKey("user.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)


class Court(Base):
    __tablename__ = "court"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, ForeignKey("user.id"), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class CourtOccupancy(Base):
    __tablename__ = "court_occupancy"
    id = Column(String, primary_key=True)
    rotation_id = Column(String, ForeignKey("rotation.id"), nullable=False)
    court_id = Column(String, ForeignKey("court.id"), nullable=False)
    status = Column(String, nullable=False, default="available")  # available | in_match | maintenance
    current_match_id = Column(String, nullable=True)
    next_match_id = Column(String, nullable=True)

    court = relationship("Court", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "rotation_id",
            "court_id",
            name="uq_court_occupancy_rotation_id_court_id",
        ),
    )


class QueueEntry(Base):
    __tablename__ = "queue_entry"
    id = Column(String, primary_key=True)
    rotation_id = Column(String, ForeignKey("rotation.id"), nullable=False)
    type = Column(String, nullable=False)  # "singles" | "doubles"
    status = Column(String, nullable=False, default="queued")  # queued | assigned | removed
    position = Column(Integer, nullable=False)
    manual_order = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    players = relationship(
        "QueueEntryPlayer",
        cascade="all, delete-orphan",
        lazy="selectin",
        back_populates="entry",
    )

    __table_args__ = (
        Index("ix_queue_entry_rotation_status", "rotation_id", "status"),
    )

    @property
    def player_ids(self) -> list[str]:
        return [p.player_id for p in self.players]


class QueueEntryPlayer(Base):
    __tablename__ = "queue_entry_player"
    entry_id = Column(
        String, ForeignKey("queue_entry.id", ondelete="CASCADE"), primary_key=True
    )
    player_id = Column(String, ForeignKey("player.id"), primary_key=True)

    entry = relationship("QueueEntry", back_populates="players")


class PlayerRotationStatus(Base):
    __tablename__ = "player_rotation_status"
    rotation_id = Column(String, ForeignKey("rotation.id"), primary_key=True)
    player_id = Column(String, ForeignKey("player.id"), primary_key=True)
    status = Column(String, nullable=False, default="checked_in")  # checked_in | present | away | done
    games_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    last_played_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    is_new_player = Column(Boolean, nullable=False, default=False)

    player = relationship("Player", lazy="selectin")


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    rotation_id = Column(String, ForeignKey("rotation.id"), nullable=False)
    court_occupancy_id = Column(
        String, ForeignKey("court_occupancy.id"), nullable=True
    )
    status = Column(String, nullable=False, default="active")  # active | ended | cancelled
    match_type = Column(String, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    score = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    winner_team = Column(Integer, nullable=True)

    participants = relationship(
        "MatchParticipant",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MatchParticipant.team_number",
        back_populates="match",
    )

    def team(self, team_number: int) -> list[str]:
        return [p.player_id for p in self.participants if p.team_number == team_number]


class MatchParticipant(Base):
    __tablename__ = "match_participant"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    player_id = Column(String, ForeignKey("player.id"), nullable=False)
    team_number = Column(Integer, nullable=False)  # 1 | 2

    match = relationship("Match", back_populates="participants")


class BracketOverride(Base):
    """Opaque correction recorded for the external bracket feature."""

    __tablename__ = "bracket_override"
    id = Column(String, primary_key=True)
    rotation_id = Column(String, ForeignKey("rotation.id"), nullable=False)
    key = Column(String, nullable=False)
    value = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_by = Column(String, ForeignKey("user.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
