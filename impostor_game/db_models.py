# impostor_game/db_models.py
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from impostor_game.database import Base, utcnow
from impostor_game.models import RoomStatus


def new_id() -> str:
    return str(uuid.uuid4())


class DBRoom(Base):
    """
    Represents a room in the database.
    Maps to the 'rooms' table. Every other table hangs off the room code.
    """
    __tablename__ = "rooms"

    code = Column(String(6), primary_key=True)
    host_id = Column(String(36), nullable=False)
    status = Column(String(20), default=RoomStatus.LOBBY.value, nullable=False)
    current_round = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Deletes cascade in the database; the ORM only has to get out of the way
    players = relationship("DBPlayer", back_populates="room", cascade="all, delete-orphan", passive_deletes=True)
    rounds = relationship("DBRound", back_populates="room", cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        return {
            "code": self.code,
            "host_id": self.host_id,
            "status": self.status,
            "current_round": self.current_round,
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
        }


class DBPlayer(Base):
    """
    Represents a player in the database.
    Maps to the 'players' table.
    """
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=new_id)
    room_code = Column(String(6), ForeignKey("rooms.code", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(20), nullable=False)
    is_host = Column(Boolean, default=False, nullable=False)
    connected = Column(Boolean, default=True, nullable=False)
    kicked = Column(Boolean, default=False, nullable=False)
    kicked_at = Column(DateTime, nullable=True)
    device_id = Column(String(128), nullable=True, index=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    room = relationship("DBRoom", back_populates="players")

    def to_dict(self):
        """Convert player to dictionary for API responses"""
        return {
            "id": self.id,
            "room_code": self.room_code,
            "name": self.name,
            "is_host": self.is_host,
            "connected": self.connected,
            "kicked": self.kicked,
            "joined_at": self.joined_at.isoformat() + "Z" if self.joined_at else None,
        }


class DBRound(Base):
    """
    One played round. Never updated after creation.
    """
    __tablename__ = "rounds"

    id = Column(String(36), primary_key=True, default=new_id)
    room_code = Column(String(6), ForeignKey("rooms.code", ondelete="CASCADE"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    pack = Column(String(32), nullable=False)
    mode = Column(String(20), nullable=False)
    impostor_count = Column(Integer, default=1, nullable=False)
    clue_rounds = Column(Integer, default=1, nullable=False)
    timer_seconds = Column(Integer, nullable=True)
    crew_word = Column(String(100), nullable=False)
    impostor_word = Column(String(100), nullable=False)
    started_at = Column(DateTime, default=utcnow, nullable=False)

    room = relationship("DBRoom", back_populates="rounds")
    assignments = relationship("DBAssignment", cascade="all, delete-orphan", passive_deletes=True)
    votes = relationship("DBVote", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("room_code", "round_number", name="unique_round_number_per_room"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "room_code": self.room_code,
            "round_number": self.round_number,
            "pack": self.pack,
            "mode": self.mode,
            "impostor_count": self.impostor_count,
            "clue_rounds": self.clue_rounds,
            "timer_seconds": self.timer_seconds,
            "started_at": self.started_at.isoformat() + "Z" if self.started_at else None,
        }


class DBAssignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(String(36), ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)
    word_shown = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="unique_assignment_per_player"),
    )


class DBVote(Base):
    """
    Represents a ballot in the database.
    Maps to the 'votes' table.
    """
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(String(36), ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    accused_player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Unique constraint: one counted ballot per voter per round
    __table_args__ = (
        UniqueConstraint("round_id", "voter_id", name="unique_vote_per_voter"),
    )


class DBReadyMark(Base):
    """
    A player's "ready" in the current REVEAL phase, one row per player.
    """
    __tablename__ = "ready_marks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_code = Column(String(6), ForeignKey("rooms.code", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("room_code", "player_id", name="unique_ready_per_player"),
    )


class DBPresence(Base):
    __tablename__ = "presence"

    room_code = Column(String(6), ForeignKey("rooms.code", ondelete="CASCADE"), primary_key=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), primary_key=True)
    last_seen = Column(DateTime, default=utcnow, nullable=False, index=True)
