import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from impostor_game.config import MAX_NAME_LENGTH, ROOM_CODE_LENGTH
from impostor_game.models import GameMode

ROOM_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{ROOM_CODE_LENGTH}}}$")


def clean_name(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Name is required")
    if len(value) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be {MAX_NAME_LENGTH} characters or less")
    return value


def clean_room_code(value: str) -> str:
    value = (value or "").strip().upper()
    if not ROOM_CODE_PATTERN.match(value):
        raise ValueError("Invalid room code")
    return value


class CreateRoomRequest(BaseModel):
    name: str
    device_id: Optional[str] = Field(default=None, max_length=128)


class JoinRoomRequest(BaseModel):
    room_code: str
    name: str
    device_id: Optional[str] = Field(default=None, max_length=128)


class RejoinRoomRequest(BaseModel):
    room_code: str
    device_id: str = Field(min_length=1, max_length=128)


class KickRequest(BaseModel):
    player_id: str


class VoteRequest(BaseModel):
    accused_player_id: str


class GameSettings(BaseModel):
    """
    Host-chosen settings for the next round.
    impostor_count and clue_rounds are fixed by policy and always forced to 1.
    """
    pack: str = Field(default="classic", pattern=r"^[a-z0-9_-]{1,32}$")
    mode: GameMode = GameMode.BLANK
    timer_seconds: Optional[int] = Field(default=None, ge=30, le=3600)
    impostor_count: int = 1
    clue_rounds: int = 1

    @field_validator("impostor_count", "clue_rounds")
    @classmethod
    def _fixed_at_one(cls, v):
        return 1


class PlayerOut(BaseModel):
    id: str
    room_code: str
    name: str
    is_host: bool
    connected: bool
    kicked: bool
    joined_at: Optional[str] = None


class RoomOut(BaseModel):
    code: str
    host_id: str
    status: str
    current_round: int
    created_at: Optional[str] = None


class SessionResponse(BaseModel):
    room_code: str
    token: str
    player: PlayerOut
    room: RoomOut
    players: List[PlayerOut] = []


class SnapshotResponse(BaseModel):
    room: RoomOut
    players: List[PlayerOut]
    current_player: PlayerOut


class StatusResponse(BaseModel):
    success: bool = True
    new_status: str


class ReadyResponse(BaseModel):
    success: bool = True
    all_ready: bool
    ready_count: int
    total_count: int


class VoteResponse(BaseModel):
    success: bool = True
    vote_counts: dict
    total_votes: int
    all_voted: bool
