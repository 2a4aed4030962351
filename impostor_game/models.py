# impostor_game/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class RoomStatus(str, Enum):
    LOBBY = "LOBBY"
    ASSIGNING = "ASSIGNING"  # reserved, never persisted
    REVEAL = "REVEAL"
    DISCUSS = "DISCUSS"
    VOTE = "VOTE"
    REVEAL_RESULT = "REVEAL_RESULT"
    ENDED = "ENDED"


class PlayerRole(str, Enum):
    INNOCENT = "INNOCENT"
    IMPOSTOR = "IMPOSTOR"


class GameMode(str, Enum):
    BLANK = "BLANK"          # impostor sees the sentinel, no word
    DECEPTION = "DECEPTION"  # impostor sees a close word


class WinState(str, Enum):
    INNOCENT = "INNOCENT"
    IMPOSTOR = "IMPOSTOR"


BLANK_WORD = "?"


@dataclass
class WordPack:
    """A loaded, normalized word pack."""
    pack_id: str
    words: List[str]
    close_pairs: Dict[str, List[str]] = field(default_factory=dict)
    name: str = ""
    description: str = ""


@dataclass
class RoundHistory:
    """
    Words used by a room's earlier rounds, most recent first.
    """
    crew_words: List[str] = field(default_factory=list)
    impostor_words: List[str] = field(default_factory=list)


@dataclass
class RoleDraw:
    """Outcome of the role assignment engine for one round."""
    crew_word: str
    impostor_word: str
    impostor_ids: List[str]
    innocent_ids: List[str]

    def word_for(self, player_id: str) -> str:
        return self.impostor_word if player_id in self.impostor_ids else self.crew_word

    def role_for(self, player_id: str) -> PlayerRole:
        return PlayerRole.IMPOSTOR if player_id in self.impostor_ids else PlayerRole.INNOCENT


@dataclass
class MostVoted:
    player_id: str
    name: str
    votes: int


@dataclass
class RoundResult:
    impostor_ids: List[str]
    crew_word: str
    win: WinState
    vote_counts: Dict[str, dict]
    most_voted: Optional[MostVoted] = None

    def to_dict(self):
        """Convert result to dictionary for API responses"""
        return {
            "impostorIds": self.impostor_ids,
            "crewWord": self.crew_word,
            "win": self.win.value,
            "voteCounts": self.vote_counts,
            "mostVotedPlayer": (
                {"id": self.most_voted.player_id, "name": self.most_voted.name, "votes": self.most_voted.votes}
                if self.most_voted else None
            ),
        }
