# impostor_game/role_assignment.py
"""
Role Assignment Engine.

Picks the round's crew word with anti-repetition weighting, derives what the
impostor sees, and splits the connected players into impostors and innocents.
The pure helpers take an explicit random.Random so tests can seed them.
"""
import logging
import random
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from impostor_game.config import MIN_PLAYERS, RECENT_WORD_WINDOW, WORD_HISTORY_LOOKBACK
from impostor_game.db_models import DBAssignment, DBPlayer, DBRound
from impostor_game.errors import InsufficientPlayers, TooManyImpostors
from impostor_game.models import BLANK_WORD, GameMode, RoleDraw, RoundHistory, WordPack
from impostor_game.word_packs import WordPackProvider, normalize_word

logger = logging.getLogger(__name__)

UNUSED_WEIGHT = 3.0
USED_WEIGHT = 1.0
RECENT_WEIGHT = 0.5


def word_weight(word: str, used: set, recent: Sequence[str]) -> float:
    if word in recent:
        # Older entries in the recent window weigh more than newer ones
        age = list(recent).index(word)
        return RECENT_WEIGHT * (age + 1) / (len(recent) + 1)
    if word in used:
        return USED_WEIGHT
    return UNUSED_WEIGHT


def _weighted_pick(candidates: List[str], used: set, recent: Sequence[str], rng: random.Random) -> str:
    weights = [word_weight(w, used, recent) for w in candidates]
    return rng.choices(candidates, weights=weights, k=1)[0]


def select_crew_word(
    words: Sequence[str],
    previous_words: Sequence[str],
    rng: random.Random,
    lookback: int = WORD_HISTORY_LOOKBACK,
    recent_window: int = RECENT_WORD_WINDOW,
) -> str:
    """
    Choose the crew word for a new round.

    previous_words is the room's crew words, most recent first. Tiers, first
    non-empty wins: unused and not recent, unused, used but not recent, all.
    The previous round's word is never picked again while another word exists.
    """
    if not words:
        raise ValueError("cannot select a word from an empty list")

    history = [normalize_word(w) for w in previous_words]
    used = set(history[:lookback])
    recent = history[:recent_window]
    recent_set = set(recent)
    last = history[0] if history else None

    pool = list(words)
    if last is not None and len(pool) > 1:
        pool = [w for w in pool if w != last]

    unused = [w for w in pool if w not in used]
    tiers = (
        [w for w in unused if w not in recent_set],
        unused,
        [w for w in pool if w in used and w not in recent_set],
        pool,
    )
    for tier in tiers:
        if tier:
            return _weighted_pick(tier, used, recent, rng)
    # unreachable: pool is never empty
    return pool[0]


def select_impostor_word(
    crew_word: str,
    pack: WordPack,
    mode: GameMode,
    previous_impostor_words: Sequence[str],
    rng: random.Random,
) -> str:
    if mode != GameMode.DECEPTION:
        return BLANK_WORD

    used = {normalize_word(w) for w in previous_impostor_words}
    pairs = [w for w in pack.close_pairs.get(crew_word, []) if w != crew_word]
    if pairs:
        weights = [USED_WEIGHT if w in used else UNUSED_WEIGHT for w in pairs]
        return rng.choices(pairs, weights=weights, k=1)[0]

    others = [w for w in pack.words if w != crew_word]
    if others:
        return rng.choice(others)
    return BLANK_WORD


def partition_roles(player_ids: Sequence[str], impostor_count: int, rng: random.Random) -> Tuple[List[str], List[str]]:
    """Uniform shuffle, first impostor_count become impostors."""
    shuffled = list(player_ids)
    rng.shuffle(shuffled)
    return shuffled[:impostor_count], shuffled[impostor_count:]


def draw_roles(
    player_ids: Sequence[str],
    impostor_count: int,
    pack: WordPack,
    mode: GameMode,
    history: RoundHistory,
    rng: random.Random,
) -> RoleDraw:
    if len(player_ids) < MIN_PLAYERS:
        raise InsufficientPlayers(f"Need at least {MIN_PLAYERS} connected players")
    if impostor_count >= len(player_ids):
        raise TooManyImpostors("Too many impostors for player count")

    crew_word = select_crew_word(pack.words, history.crew_words, rng)
    impostor_word = select_impostor_word(crew_word, pack, mode, history.impostor_words, rng)
    impostors, innocents = partition_roles(player_ids, impostor_count, rng)
    return RoleDraw(crew_word=crew_word, impostor_word=impostor_word, impostor_ids=impostors, innocent_ids=innocents)


def load_history(db: Session, room_code: str, limit: int = WORD_HISTORY_LOOKBACK) -> RoundHistory:
    rows = (
        db.query(DBRound.crew_word, DBRound.impostor_word)
        .filter(DBRound.room_code == room_code)
        .order_by(DBRound.round_number.desc())
        .limit(limit)
        .all()
    )
    return RoundHistory(
        crew_words=[r.crew_word for r in rows],
        impostor_words=[r.impostor_word for r in rows if r.impostor_word != BLANK_WORD],
    )


class RoleAssignmentEngine:
    def __init__(self, packs: Optional[WordPackProvider] = None, rng: Optional[random.Random] = None):
        self.packs = packs or WordPackProvider()
        self.rng = rng or random.SystemRandom()

    def start_round(self, db: Session, room_code: str, round_number: int, settings, players: List[DBPlayer]):
        """
        Stage a new round and its assignments in the caller's transaction.

        Nothing is committed here; the caller commits together with the room
        transition so a failure leaves no orphaned round behind.
        """
        pack = self.packs.load(settings.pack)
        history = load_history(db, room_code)
        draw = draw_roles(
            [p.id for p in players],
            settings.impostor_count,
            pack,
            settings.mode,
            history,
            self.rng,
        )

        db_round = DBRound(
            room_code=room_code,
            round_number=round_number,
            pack=settings.pack,
            mode=settings.mode.value,
            impostor_count=settings.impostor_count,
            clue_rounds=settings.clue_rounds,
            timer_seconds=settings.timer_seconds,
            crew_word=draw.crew_word,
            impostor_word=draw.impostor_word,
        )
        db.add(db_round)
        db.flush()

        assignments = [
            DBAssignment(
                round_id=db_round.id,
                player_id=p.id,
                role=draw.role_for(p.id).value,
                word_shown=draw.word_for(p.id),
            )
            for p in players
        ]
        db.add_all(assignments)
        db.flush()

        logger.info(
            "🎲 Room %s round %s: %s players, %s impostor(s), pack=%s mode=%s",
            room_code, round_number, len(players), len(draw.impostor_ids), settings.pack, settings.mode.value,
        )
        return db_round, assignments
