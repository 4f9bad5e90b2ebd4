from typing import Any, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

MatchType = Literal["singles", "doubles"]


def _strip_required(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} must not be empty")
    return trimmed


class UserOut(BaseModel):
    id: str
    username: str
    role: str
    ownerId: Optional[str] = None


# ---------------------------------------------------------------------------
# Rotations and courts
# ---------------------------------------------------------------------------


class RotationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    returnToQueue: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class RotationOut(BaseModel):
    id: str
    name: str
    status: str
    returnToQueue: bool
    createdAt: Optional[datetime] = None
    closedAt: Optional[datetime] = None


class CourtCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class CourtOut(BaseModel):
    id: str
    name: str
    notes: Optional[str] = None
    active: bool


class CourtStatusUpdate(BaseModel):
    rotationId: str
    status: Literal["available", "in_match", "maintenance"]

    model_config = ConfigDict(extra="forbid")


class ParticipantOut(BaseModel):
    playerId: str
    teamNumber: int


class MatchOut(BaseModel):
    id: str
    rotationId: str
    courtOccupancyId: Optional[str] = None
    status: str
    matchType: str
    startedAt: datetime
    endedAt: Optional[datetime] = None
    score: Any = None
    winnerTeam: Optional[int] = None
    participants: List[ParticipantOut]


class CourtOccupancyOut(BaseModel):
    id: str
    rotationId: str
    courtId: str
    courtName: Optional[str] = None
    status: str
    currentMatchId: Optional[str] = None
    nextMatchId: Optional[str] = None
    currentMatch: Optional[MatchOut] = None


class CourtBoardOut(BaseModel):
    rotation: RotationOut
    courts: List[CourtOccupancyOut]


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class EnqueueRequest(BaseModel):
    type: MatchType
    playerIds: List[str] = Field(..., min_length=1, max_length=2)

    model_config = ConfigDict(extra="forbid")

    @field_validator("playerIds")
    @classmethod
    def _strip_ids(cls, value: List[str]) -> List[str]:
        return [_strip_required(pid, "playerIds") for pid in value]


class EntryRequest(BaseModel):
    entryId: str

    model_config = ConfigDict(extra="forbid")


class ReorderRequest(BaseModel):
    orderedEntryIds: List[str] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class QueueEntryOut(BaseModel):
    id: str
    rotationId: str
    type: str
    status: str
    position: int
    manualOrder: bool
    createdAt: datetime
    playerIds: List[str]


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------


class SuggestRequest(BaseModel):
    matchType: MatchType = "doubles"

    model_config = ConfigDict(extra="forbid")


class SuggestionOut(BaseModel):
    matchType: str
    teams: List[List[str]]
    entryIds: List[str]


class MatchStart(BaseModel):
    courtOccupancyId: str
    matchType: MatchType
    teams: List[List[str]] = Field(..., min_length=2, max_length=2)
    entryIds: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")


class MatchEnd(BaseModel):
    matchId: str
    score: Any = None
    winnerTeam: Optional[Literal[1, 2]] = None

    model_config = ConfigDict(extra="forbid")


class MatchCancel(BaseModel):
    matchId: str

    model_config = ConfigDict(extra="forbid")


class MatchCorrection(BaseModel):
    """Partial result correction; omitted fields are left untouched.

    ``winnerTeam: null`` is a real correction (no winner), so callers must
    check ``model_fields_set`` rather than the value.
    """

    matchId: str
    score: Any = None
    winnerTeam: Optional[Literal[1, 2]] = None

    model_config = ConfigDict(extra="forbid")


class MatchIdOut(BaseModel):
    matchId: str


class MatchCancelOut(BaseModel):
    matchId: str
    requeuedEntryIds: List[str]


# ---------------------------------------------------------------------------
# Ledger and rankings
# ---------------------------------------------------------------------------


class RotationPlayerRequest(BaseModel):
    rotationId: str

    model_config = ConfigDict(extra="forbid")


class CheckoutRequest(BaseModel):
    rotationId: str
    status: Literal["away", "done"]

    model_config = ConfigDict(extra="forbid")


class PlayerStatusOut(BaseModel):
    rotationId: str
    playerId: str
    playerName: Optional[str] = None
    status: str
    gamesPlayed: int
    wins: int
    losses: int
    lastPlayedAt: Optional[datetime] = None
    checkedInAt: Optional[datetime] = None
    isNewPlayer: bool


class RankingOut(BaseModel):
    rank: int
    playerId: str
    playerName: str
    gamesPlayed: int
    wins: int
    losses: int
    winPct: float


class RankingsOut(BaseModel):
    rotationId: str
    totalPlayers: int
    players: List[RankingOut]


# ---------------------------------------------------------------------------
# Bracket overrides
# ---------------------------------------------------------------------------


class OverrideCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=200)
    value: Any = None

    model_config = ConfigDict(extra="forbid")


class OverrideOut(BaseModel):
    id: str
    rotationId: str
    key: str
    value: Any = None
    createdBy: Optional[str] = None
    createdAt: Optional[datetime] = None
