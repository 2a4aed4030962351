from fastapi import APIRouter, Depends

from impostor_game.game_manager import GameManager, get_game_manager
from impostor_game.sessions import SessionClaims, get_session

router = APIRouter(prefix="/api/presence", tags=["presence"])


@router.post("/heartbeat")
def heartbeat(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.heartbeat(claims)


@router.post("/disconnect")
def disconnect(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.leave(claims)
