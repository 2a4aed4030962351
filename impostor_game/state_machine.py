# impostor_game/state_machine.py
"""
Room lifecycle as an explicit transition table.

Every phase change in GameManager goes through next_status(); an event that is
not in the table for the room's current status is rejected with InvalidPhase.
Room deletion (host "end room", sweeper purge) is not a transition, it removes
the room outright.
"""
from enum import Enum

from impostor_game.database import utcnow
from impostor_game.db_models import DBReadyMark, DBRoom
from impostor_game.errors import InvalidPhase
from impostor_game.models import RoomStatus


class RoomEvent(str, Enum):
    START_GAME = "start_game"
    ALL_READY = "all_ready"
    FORCE_DISCUSS = "force_discuss"
    END_DISCUSSION = "end_discussion"
    ALL_VOTED = "all_voted"
    END_VOTE = "end_vote"
    PLAY_AGAIN = "play_again"
    ROOM_EMPTY = "room_empty"


# (status, event) -> status
TRANSITIONS = {
    (RoomStatus.LOBBY, RoomEvent.START_GAME): RoomStatus.REVEAL,
    (RoomStatus.REVEAL, RoomEvent.ALL_READY): RoomStatus.DISCUSS,
    (RoomStatus.REVEAL, RoomEvent.FORCE_DISCUSS): RoomStatus.DISCUSS,
    (RoomStatus.DISCUSS, RoomEvent.END_DISCUSSION): RoomStatus.VOTE,
    (RoomStatus.VOTE, RoomEvent.ALL_VOTED): RoomStatus.REVEAL_RESULT,
    (RoomStatus.VOTE, RoomEvent.END_VOTE): RoomStatus.REVEAL_RESULT,
    (RoomStatus.REVEAL_RESULT, RoomEvent.PLAY_AGAIN): RoomStatus.LOBBY,
}

# Any live room can be swept to ENDED once it sits empty
for _status in RoomStatus:
    if _status not in (RoomStatus.ENDED, RoomStatus.ASSIGNING):
        TRANSITIONS[(_status, RoomEvent.ROOM_EMPTY)] = RoomStatus.ENDED

# Statuses whose entry empties the ready-set
CLEARS_READY = {RoomStatus.REVEAL, RoomStatus.DISCUSS, RoomStatus.LOBBY}

_PHASE_NAMES = {
    RoomStatus.LOBBY: "lobby",
    RoomStatus.REVEAL: "reveal",
    RoomStatus.DISCUSS: "discussion",
    RoomStatus.VOTE: "voting",
    RoomStatus.REVEAL_RESULT: "results",
    RoomStatus.ENDED: "ended",
}


def next_status(current, event: RoomEvent) -> RoomStatus:
    current = RoomStatus(current)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidPhase(
            f"Cannot {event.value.replace('_', ' ')} while room is in {_PHASE_NAMES.get(current, current.value)} phase"
        ) from None


def can_apply(current, event: RoomEvent) -> bool:
    return (RoomStatus(current), event) in TRANSITIONS


def apply_transition(db, room_code: str, current, event: RoomEvent, **values) -> RoomStatus:
    """
    Compare-and-swap the room's status inside the caller's transaction.

    The UPDATE only matches while the room is still in `current`; zero matched
    rows means a concurrent request moved it first.
    """
    current = RoomStatus(current)
    target = next_status(current, event)
    values.update(status=target.value, updated_at=utcnow())
    updated = (
        db.query(DBRoom)
        .filter(DBRoom.code == room_code, DBRoom.status == current.value)
        .update(values, synchronize_session=False)
    )
    if not updated:
        raise InvalidPhase(f"Room is no longer in {_PHASE_NAMES[current]} phase")

    if target in CLEARS_READY:
        db.query(DBReadyMark).filter(DBReadyMark.room_code == room_code).delete(synchronize_session=False)
    return target
