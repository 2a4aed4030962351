# impostor_game/game_manager.py
import logging
import random
import string
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from impostor_game.config import MAX_PLAYERS, ROOM_CODE_LENGTH
from impostor_game.database import SessionLocal, utcnow
from impostor_game.db_models import (
    DBAssignment,
    DBPlayer,
    DBPresence,
    DBReadyMark,
    DBRoom,
    DBRound,
    DBVote,
    new_id,
)
from impostor_game.errors import (
    Conflict,
    Forbidden,
    GameError,
    Gone,
    Internal,
    InvalidPhase,
    NotFound,
    ValidationError,
)
from impostor_game.models import PlayerRole, RoomStatus
from impostor_game.role_assignment import RoleAssignmentEngine
from impostor_game.schemas import GameSettings, clean_name, clean_room_code
from impostor_game.sessions import SessionClaims, issue_token
from impostor_game.state_machine import RoomEvent, apply_transition, next_status
from impostor_game.vote_tally import compute_result, tally_votes

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_ATTEMPTS = 10


class GameManager:
    """
    Runs every room operation against the repository.

    One short session per call; phase changes go through the transition table
    as compare-and-swap updates, so concurrent callers can only ever advance
    a room once.
    """

    def __init__(self, session_factory=SessionLocal, engine: Optional[RoleAssignmentEngine] = None):
        self.session_factory = session_factory
        self.engine = engine or RoleAssignmentEngine()
        self._rng = random.SystemRandom()

    def _get_db(self) -> Session:
        """Get a new database session"""
        return self.session_factory()

    @contextmanager
    def _session(self):
        db = self._get_db()
        try:
            yield db
        except GameError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("❌ Repository failure")
            raise Internal("Repository failure") from e
        finally:
            db.close()

    # ------------------------------
    # Lookups
    # ------------------------------
    def _get_room(self, db: Session, code: str) -> DBRoom:
        room = db.query(DBRoom).filter(DBRoom.code == code).first()
        if not room:
            raise NotFound("Room not found")
        return room

    def _get_live_room(self, db: Session, code: str) -> DBRoom:
        room = self._get_room(db, code)
        if room.status == RoomStatus.ENDED.value:
            raise Gone("Room has ended")
        return room

    def _get_actor(self, db: Session, claims: SessionClaims) -> DBPlayer:
        player = db.query(DBPlayer).filter(
            DBPlayer.id == claims.player_id,
            DBPlayer.room_code == claims.room_code,
        ).first()
        if not player:
            raise NotFound("Player not found in room")
        if player.kicked:
            raise Forbidden("Player kicked")
        return player

    def _players(self, db: Session, code: str) -> List[DBPlayer]:
        return (
            db.query(DBPlayer)
            .filter(DBPlayer.room_code == code)
            .order_by(DBPlayer.joined_at, DBPlayer.name)
            .all()
        )

    def _connected_players(self, db: Session, code: str) -> List[DBPlayer]:
        return (
            db.query(DBPlayer)
            .filter(DBPlayer.room_code == code, DBPlayer.connected.is_(True), DBPlayer.kicked.is_(False))
            .order_by(DBPlayer.joined_at, DBPlayer.name)
            .all()
        )

    def _current_round(self, db: Session, room: DBRoom) -> Optional[DBRound]:
        return db.query(DBRound).filter(
            DBRound.room_code == room.code,
            DBRound.round_number == room.current_round,
        ).first()

    def _touch_presence(self, db: Session, room_code: str, player_id: str):
        db.merge(DBPresence(room_code=room_code, player_id=player_id, last_seen=utcnow()))

    def _drop_presence_and_ready(self, db: Session, room_code: str, player_id: str):
        db.query(DBPresence).filter(
            DBPresence.room_code == room_code, DBPresence.player_id == player_id
        ).delete(synchronize_session=False)
        db.query(DBReadyMark).filter(
            DBReadyMark.room_code == room_code, DBReadyMark.player_id == player_id
        ).delete(synchronize_session=False)

    def _session_payload(self, db: Session, room: DBRoom, player: DBPlayer) -> dict:
        return {
            "room_code": room.code,
            "token": issue_token(player.id, room.code, player.is_host),
            "player": player.to_dict(),
            "room": room.to_dict(),
            "players": [p.to_dict() for p in self._players(db, room.code)],
        }

    def _generate_room_code(self, db: Session) -> str:
        for _ in range(ROOM_CODE_ATTEMPTS):
            code = "".join(self._rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if not db.query(DBRoom.code).filter(DBRoom.code == code).first():
                return code
        raise Internal("Unable to generate unique room code")

    # ------------------------------
    # Room lifecycle
    # ------------------------------
    def create_room(self, name: str, device_id: Optional[str] = None) -> dict:
        """
        Create a room in the LOBBY with its host player.
        """
        try:
            name = clean_name(name)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        with self._session() as db:
            code = self._generate_room_code(db)
            # The host id must be known before the room row exists
            host = DBPlayer(id=new_id(), room_code=code, name=name, is_host=True, connected=True, device_id=device_id)
            room = DBRoom(code=code, host_id=host.id, status=RoomStatus.LOBBY.value, current_round=0)
            db.add(room)
            db.flush()
            db.add(host)
            db.flush()
            self._touch_presence(db, code, host.id)
            db.commit()

            logger.info("✅ Room %s created by %s", code, name)
            return self._session_payload(db, room, host)

    def join_room(self, room_code: str, name: str, device_id: Optional[str] = None) -> dict:
        """
        Add a new player by name. Never deduplicates by device; see rejoin_room.
        """
        try:
            room_code = clean_room_code(room_code)
            name = clean_name(name)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        with self._session() as db:
            room = self._get_room(db, room_code)
            if room.status == RoomStatus.ENDED.value:
                raise Gone("This room has ended")

            if device_id and db.query(DBPlayer.id).filter(
                DBPlayer.room_code == room_code,
                DBPlayer.device_id == device_id,
                DBPlayer.kicked.is_(True),
            ).first():
                raise Forbidden("Player kicked")

            taken = db.query(DBPlayer.id).filter(
                DBPlayer.room_code == room_code,
                DBPlayer.kicked.is_(False),
                func.lower(DBPlayer.name) == name.lower(),
            ).first()
            if taken:
                raise Conflict("Name already taken in this room")

            connected = db.query(func.count(DBPlayer.id)).filter(
                DBPlayer.room_code == room_code,
                DBPlayer.connected.is_(True),
                DBPlayer.kicked.is_(False),
            ).scalar()
            if connected >= MAX_PLAYERS:
                raise Conflict(f"Room is full ({MAX_PLAYERS} players max)")

            player = DBPlayer(room_code=room_code, name=name, is_host=False, connected=True, device_id=device_id)
            db.add(player)
            db.flush()
            self._touch_presence(db, room_code, player.id)
            db.commit()

            logger.info("✅ Player %s joined room %s", name, room_code)
            return self._session_payload(db, room, player)

    def rejoin_room(self, room_code: str, device_id: str) -> dict:
        """
        Reconnect the existing player registered for this device.
        """
        try:
            room_code = clean_room_code(room_code)
        except ValueError as e:
            raise ValidationError(str(e)) from None
        if not device_id:
            raise ValidationError("Missing device_id")

        with self._session() as db:
            room = self._get_room(db, room_code)
            player = (
                db.query(DBPlayer)
                .filter(DBPlayer.room_code == room_code, DBPlayer.device_id == device_id)
                .order_by(DBPlayer.joined_at.desc())
                .first()
            )
            if not player:
                raise NotFound("No existing player for device")
            if room.status == RoomStatus.ENDED.value:
                raise Gone("Room has ended")
            if player.kicked:
                raise Forbidden("Player kicked")

            player.connected = True
            self._touch_presence(db, room_code, player.id)
            db.commit()

            logger.info("🔄 Player %s rejoined room %s", player.name, room_code)
            return self._session_payload(db, room, player)

    def get_snapshot(self, claims: SessionClaims, room_code: str) -> dict:
        room_code = (room_code or "").upper()
        if claims.room_code != room_code:
            raise Forbidden("Access denied to this room")

        with self._session() as db:
            room = self._get_live_room(db, room_code)
            players = self._players(db, room_code)
            current = next((p for p in players if p.id == claims.player_id), None)
            if not current:
                raise NotFound("Player not found in room")
            # Kicked players still get the snapshot so the client can show its notice
            return {
                "room": room.to_dict(),
                "players": [p.to_dict() for p in players],
                "current_player": current.to_dict(),
            }

    def list_players(self, claims: SessionClaims, room_code: str) -> List[dict]:
        room_code = (room_code or "").upper()
        if claims.room_code != room_code:
            raise Forbidden("Access denied to this room")
        with self._session() as db:
            self._get_room(db, room_code)
            return [p.to_dict() for p in self._players(db, room_code)]

    def end_room(self, claims: SessionClaims) -> dict:
        """Delete the room outright; everything under it cascades."""
        claims.require_host("end room")
        with self._session() as db:
            deleted = db.query(DBRoom).filter(DBRoom.code == claims.room_code).delete(synchronize_session=False)
            db.commit()
        if deleted:
            logger.info("🗑️ Room %s ended by host", claims.room_code)
        return {"ok": True}

    # ------------------------------
    # Presence
    # ------------------------------
    def heartbeat(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            self._get_live_room(db, claims.room_code)
            player = self._get_actor(db, claims)
            player.connected = True
            self._touch_presence(db, claims.room_code, player.id)
            db.commit()
        return {"ok": True}

    def leave(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            player = db.query(DBPlayer).filter(
                DBPlayer.id == claims.player_id, DBPlayer.room_code == claims.room_code
            ).first()
            if player:
                player.connected = False
            self._drop_presence_and_ready(db, claims.room_code, claims.player_id)
            db.commit()
        logger.info("👋 Player %s left room %s", claims.player_id, claims.room_code)
        return {"ok": True}

    def kick(self, claims: SessionClaims, target_id: str) -> dict:
        """
        Host-only. Kicking an absent or already kicked player is a no-op.
        """
        claims.require_host("remove players")
        if not target_id:
            raise ValidationError("Missing player_id")

        with self._session() as db:
            target = db.query(DBPlayer).filter(
                DBPlayer.id == target_id, DBPlayer.room_code == claims.room_code
            ).first()
            if not target or target.kicked:
                return {"ok": True, "already": True}
            if target.is_host:
                raise Forbidden("Cannot remove host")

            target.connected = False
            target.kicked = True
            target.kicked_at = utcnow()
            self._drop_presence_and_ready(db, claims.room_code, target.id)
            db.commit()

            logger.info("🚫 Player %s kicked from room %s", target.name, claims.room_code)
            return {"ok": True}

    # ------------------------------
    # Game flow
    # ------------------------------
    def validate_settings(self, claims: SessionClaims, settings: GameSettings) -> dict:
        claims.require_host("update settings")
        return {"success": True, "settings": settings.model_dump(mode="json")}

    def start_game(self, claims: SessionClaims, settings: GameSettings) -> dict:
        """
        LOBBY -> REVEAL. Round, assignments and the room update commit together.
        """
        claims.require_host("start game")

        with self._session() as db:
            room = self._get_live_room(db, claims.room_code)
            next_status(room.status, RoomEvent.START_GAME)

            players = self._connected_players(db, room.code)
            round_number = room.current_round + 1
            try:
                db_round, _ = self.engine.start_round(db, room.code, round_number, settings, players)
                apply_transition(
                    db, room.code, room.status, RoomEvent.START_GAME,
                    current_round=DBRoom.current_round + 1,
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                raise InvalidPhase("Game is already starting") from None

            logger.info("🎮 Game started for room %s, round %s", room.code, round_number)
            return {
                "success": True,
                "round_id": db_round.id,
                "round_number": round_number,
                "new_status": RoomStatus.REVEAL.value,
            }

    def get_assignment(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            room = self._get_room(db, claims.room_code)
            player = self._get_actor(db, claims)
            db_round = self._current_round(db, room)
            if not db_round:
                raise NotFound("Round not found")
            assignment = db.query(DBAssignment).filter(
                DBAssignment.round_id == db_round.id, DBAssignment.player_id == player.id
            ).first()
            if not assignment:
                raise NotFound("Assignment not found")
            return {
                "role": assignment.role,
                "word_shown": assignment.word_shown,
                "round_id": db_round.id,
                "mode": db_round.mode,
                "timer_seconds": db_round.timer_seconds,
                "round": db_round.to_dict(),
            }

    def mark_ready(self, claims: SessionClaims) -> dict:
        """
        Idempotent. When every connected player is ready the room moves to DISCUSS.
        """
        with self._session() as db:
            room = self._get_live_room(db, claims.room_code)
            player = self._get_actor(db, claims)
            if room.status != RoomStatus.REVEAL.value:
                raise InvalidPhase("Room is not in reveal phase")

            exists = db.query(DBReadyMark.id).filter(
                DBReadyMark.room_code == room.code, DBReadyMark.player_id == player.id
            ).first()
            if not exists:
                db.add(DBReadyMark(room_code=room.code, player_id=player.id))
                try:
                    db.commit()
                except IntegrityError:
                    # a concurrent request from the same player got there first
                    db.rollback()

            connected_ids = {p.id for p in self._connected_players(db, room.code)}
            ready_ids = {
                pid for (pid,) in db.query(DBReadyMark.player_id).filter(DBReadyMark.room_code == room.code)
            }
            ready_count = len(connected_ids & ready_ids)
            all_ready = bool(connected_ids) and connected_ids <= ready_ids

            if all_ready:
                try:
                    apply_transition(db, room.code, RoomStatus.REVEAL, RoomEvent.ALL_READY)
                    db.commit()
                    logger.info("🎉 All players ready! Room %s advanced to DISCUSS", room.code)
                except InvalidPhase:
                    db.rollback()

            return {
                "success": True,
                "all_ready": all_ready,
                "ready_count": ready_count,
                "total_count": len(connected_ids),
            }

    def _host_transition(self, claims: SessionClaims, event: RoomEvent, action: str) -> dict:
        claims.require_host(action)
        with self._session() as db:
            room = self._get_live_room(db, claims.room_code)
            new_status = apply_transition(db, room.code, room.status, event)
            db.commit()
        logger.info("Room %s moved to %s", claims.room_code, new_status.value)
        return {"success": True, "new_status": new_status.value}

    def force_advance(self, claims: SessionClaims) -> dict:
        """Host skips the remaining ready checks: REVEAL -> DISCUSS."""
        return self._host_transition(claims, RoomEvent.FORCE_DISCUSS, "advance the game")

    def end_discussion(self, claims: SessionClaims) -> dict:
        return self._host_transition(claims, RoomEvent.END_DISCUSSION, "end discussion")

    def end_vote(self, claims: SessionClaims) -> dict:
        return self._host_transition(claims, RoomEvent.END_VOTE, "end voting")

    def play_again(self, claims: SessionClaims) -> dict:
        """
        REVEAL_RESULT -> LOBBY. Drops the finished round's votes and assignments
        but keeps the round itself and the round counter.
        """
        claims.require_host("start new game")
        with self._session() as db:
            room = self._get_live_room(db, claims.room_code)
            db_round = self._current_round(db, room)
            apply_transition(db, room.code, room.status, RoomEvent.PLAY_AGAIN)
            if db_round:
                db.query(DBVote).filter(DBVote.round_id == db_round.id).delete(synchronize_session=False)
                db.query(DBAssignment).filter(DBAssignment.round_id == db_round.id).delete(synchronize_session=False)
            db.commit()

        logger.info("🔁 Room %s reset to LOBBY for new game", claims.room_code)
        return {"success": True, "new_status": RoomStatus.LOBBY.value}

    # ------------------------------
    # Voting
    # ------------------------------
    def _ballots(self, db: Session, round_id: str):
        return db.query(DBVote.voter_id, DBVote.accused_player_id).filter(DBVote.round_id == round_id).all()

    def _names(self, db: Session, room_code: str) -> dict:
        return {pid: name for pid, name in db.query(DBPlayer.id, DBPlayer.name).filter(DBPlayer.room_code == room_code)}

    def submit_vote(self, claims: SessionClaims, accused_id: str) -> dict:
        """
        Upsert the caller's ballot. Once ballots reach the connected-player
        count the room moves to REVEAL_RESULT.
        """
        if not accused_id:
            raise ValidationError("No accused player provided")

        with self._session() as db:
            room = self._get_live_room(db, claims.room_code)
            voter = self._get_actor(db, claims)
            if room.status != RoomStatus.VOTE.value:
                raise InvalidPhase("Room is not in voting phase")
            db_round = self._current_round(db, room)
            if not db_round:
                raise NotFound("No active round found")
            accused = db.query(DBPlayer).filter(
                DBPlayer.id == accused_id, DBPlayer.room_code == room.code, DBPlayer.kicked.is_(False)
            ).first()
            if not accused:
                raise NotFound("Accused player not found")

            self._upsert_vote(db, db_round.id, voter.id, accused.id)

            vote_counts = tally_votes(self._ballots(db, db_round.id), self._names(db, room.code))
            total_votes = sum(v["count"] for v in vote_counts.values())
            total_players = len(self._connected_players(db, room.code))
            all_voted = total_players > 0 and total_votes >= total_players

            if all_voted:
                try:
                    apply_transition(db, room.code, RoomStatus.VOTE, RoomEvent.ALL_VOTED)
                    db.commit()
                    logger.info("🎉 All players have voted! Room %s advanced to REVEAL_RESULT", room.code)
                except InvalidPhase:
                    db.rollback()

            return {
                "success": True,
                "vote_counts": vote_counts,
                "total_votes": total_votes,
                "all_voted": all_voted,
            }

    def _upsert_vote(self, db: Session, round_id: str, voter_id: str, accused_id: str):
        ballot = db.query(DBVote).filter(DBVote.round_id == round_id, DBVote.voter_id == voter_id).first()
        if ballot:
            ballot.accused_player_id = accused_id
            db.commit()
            return
        db.add(DBVote(round_id=round_id, voter_id=voter_id, accused_player_id=accused_id))
        try:
            db.commit()
        except IntegrityError:
            # lost an insert race against our own earlier request; overwrite it
            db.rollback()
            db.query(DBVote).filter(DBVote.round_id == round_id, DBVote.voter_id == voter_id).update(
                {"accused_player_id": accused_id, "updated_at": utcnow()}, synchronize_session=False
            )
            db.commit()

    def get_votes(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            room = self._get_room(db, claims.room_code)
            db_round = self._current_round(db, room)
            if not db_round:
                return {"vote_counts": {}, "total_votes": 0}
            vote_counts = tally_votes(self._ballots(db, db_round.id), self._names(db, room.code))
            return {"vote_counts": vote_counts, "total_votes": sum(v["count"] for v in vote_counts.values())}

    def get_vote_count(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            room = self._get_room(db, claims.room_code)
            db_round = self._current_round(db, room)
            if not db_round:
                return {"total_votes": 0}
            count = db.query(func.count(DBVote.id)).filter(DBVote.round_id == db_round.id).scalar()
            return {"total_votes": count or 0}

    def get_results(self, claims: SessionClaims) -> dict:
        with self._session() as db:
            room = self._get_room(db, claims.room_code)
            if room.status != RoomStatus.REVEAL_RESULT.value:
                raise InvalidPhase("Results are only available after voting ends")
            db_round = self._current_round(db, room)
            if not db_round:
                raise NotFound("No current round found")

            impostor_ids = [
                pid for (pid,) in db.query(DBAssignment.player_id).filter(
                    DBAssignment.round_id == db_round.id,
                    DBAssignment.role == PlayerRole.IMPOSTOR.value,
                )
            ]
            vote_counts = tally_votes(self._ballots(db, db_round.id), self._names(db, room.code))
            result = compute_result(vote_counts, impostor_ids, db_round.crew_word)
            logger.info("Results for room %s round %s: %s wins", room.code, db_round.round_number, result.win.value)

        return result.to_dict()


game_manager = GameManager()


def get_game_manager() -> GameManager:
    """FastAPI dependency; tests override it with a manager bound to their own database."""
    return game_manager
