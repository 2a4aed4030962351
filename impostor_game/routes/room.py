from typing import List

from fastapi import APIRouter, Depends

from impostor_game.game_manager import GameManager, get_game_manager
from impostor_game.schemas import (
    CreateRoomRequest,
    JoinRoomRequest,
    KickRequest,
    PlayerOut,
    RejoinRoomRequest,
    SessionResponse,
    SnapshotResponse,
)
from impostor_game.sessions import SessionClaims, get_session

router = APIRouter(prefix="/api/room", tags=["room"])


@router.post("/create", response_model=SessionResponse)
def create_room(req: CreateRoomRequest, manager: GameManager = Depends(get_game_manager)):
    return manager.create_room(req.name, req.device_id)


@router.post("/join", response_model=SessionResponse)
def join_room(req: JoinRoomRequest, manager: GameManager = Depends(get_game_manager)):
    return manager.join_room(req.room_code, req.name, req.device_id)


@router.post("/rejoin", response_model=SessionResponse)
def rejoin_room(req: RejoinRoomRequest, manager: GameManager = Depends(get_game_manager)):
    """Reconnect a known device. 403 means the player was kicked."""
    return manager.rejoin_room(req.room_code, req.device_id)


@router.post("/kick")
def kick_player(
    req: KickRequest,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    return manager.kick(claims, req.player_id)


@router.post("/end")
def end_room(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.end_room(claims)


@router.get("/{code}", response_model=SnapshotResponse)
def get_room(
    code: str,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    """
    Polled by clients. 404/410 tell the client to go home.
    """
    return manager.get_snapshot(claims, code)


@router.get("/{code}/players", response_model=List[PlayerOut])
def get_players(
    code: str,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    return manager.list_players(claims, code)
