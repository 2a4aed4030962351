from fastapi import APIRouter, Depends

from impostor_game.game_manager import GameManager, get_game_manager
from impostor_game.schemas import GameSettings, ReadyResponse, StatusResponse, VoteRequest, VoteResponse
from impostor_game.sessions import SessionClaims, get_session

router = APIRouter(prefix="/api/game", tags=["game"])


@router.post("/start")
def start_game(
    settings: GameSettings,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    """Host only: deal roles and words, LOBBY -> REVEAL."""
    return manager.start_game(claims, settings)


@router.post("/settings")
def update_settings(
    settings: GameSettings,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    return manager.validate_settings(claims, settings)


@router.get("/assignment")
def get_assignment(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.get_assignment(claims)


@router.post("/ready", response_model=ReadyResponse)
def mark_ready(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.mark_ready(claims)


@router.post("/check-ready", response_model=StatusResponse)
def force_advance(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    """Host only: move to discussion without waiting for everyone."""
    return manager.force_advance(claims)


@router.post("/end-discussion", response_model=StatusResponse)
def end_discussion(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.end_discussion(claims)


@router.post("/vote", response_model=VoteResponse)
def submit_vote(
    req: VoteRequest,
    claims: SessionClaims = Depends(get_session),
    manager: GameManager = Depends(get_game_manager),
):
    return manager.submit_vote(claims, req.accused_player_id)


@router.get("/votes")
def get_votes(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.get_votes(claims)


@router.get("/vote-count")
def get_vote_count(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.get_vote_count(claims)


@router.post("/end-vote", response_model=StatusResponse)
def end_vote(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.end_vote(claims)


@router.get("/results")
def get_results(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.get_results(claims)


@router.post("/play-again", response_model=StatusResponse)
def play_again(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.play_again(claims)


@router.post("/leave")
def leave_game(claims: SessionClaims = Depends(get_session), manager: GameManager = Depends(get_game_manager)):
    return manager.leave(claims)
