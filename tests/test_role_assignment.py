import random
from collections import Counter

import pytest

from impostor_game.errors import Conflict, InsufficientPlayers, TooManyImpostors
from impostor_game.models import BLANK_WORD, GameMode, PlayerRole, RoundHistory, WordPack
from impostor_game.role_assignment import (
    RECENT_WEIGHT,
    UNUSED_WEIGHT,
    USED_WEIGHT,
    draw_roles,
    partition_roles,
    select_crew_word,
    select_impostor_word,
    word_weight,
)

WORDS = ["apple", "car", "book", "chair", "dog"]


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def pack():
    return WordPack(
        pack_id="test",
        words=list(WORDS),
        close_pairs={"apple": ["pear", "peach"], "car": ["truck"]},
    )


def test_word_weights():
    recent = ["dog", "car"]
    assert word_weight("apple", set(), recent) == UNUSED_WEIGHT
    assert word_weight("book", {"book"}, recent) == USED_WEIGHT
    assert word_weight("dog", {"dog"}, recent) < word_weight("car", {"car"}, recent) < RECENT_WEIGHT


def test_fresh_room_picks_any_word(rng):
    picks = {select_crew_word(WORDS, [], rng) for _ in range(200)}
    assert picks == set(WORDS)


def test_never_repeats_previous_round(rng):
    for _ in range(200):
        assert select_crew_word(WORDS, ["apple"], rng) != "apple"


def test_prefers_unused_words(rng):
    history = ["apple", "car", "book"]
    for _ in range(100):
        assert select_crew_word(WORDS, history, rng) in {"chair", "dog"}


def test_used_words_outside_recent_window_come_before_recent_ones(rng):
    # every word used; book, chair and dog sit outside a window of two
    history = ["apple", "car", "book", "chair", "dog"]
    for _ in range(50):
        assert select_crew_word(WORDS, history, rng, lookback=20, recent_window=2) in {"book", "chair", "dog"}


def test_falls_back_to_full_pool_when_everything_is_recent(rng):
    history = ["apple", "car", "book", "chair", "dog"]
    picks = {select_crew_word(WORDS, history, rng) for _ in range(300)}
    assert "apple" not in picks
    assert picks <= {"car", "book", "chair", "dog"}


def test_single_word_pack_may_repeat(rng):
    assert select_crew_word(["apple"], ["apple"], rng) == "apple"


def test_history_is_normalized(rng):
    for _ in range(50):
        assert select_crew_word(WORDS, ["  APPLE "], rng) != "apple"


def test_empty_word_list_is_an_error(rng):
    with pytest.raises(ValueError):
        select_crew_word([], [], rng)


def test_blank_mode_impostor_gets_sentinel(pack, rng):
    assert select_impostor_word("apple", pack, GameMode.BLANK, [], rng) == BLANK_WORD


def test_deception_mode_uses_close_pairs(pack, rng):
    picks = {select_impostor_word("apple", pack, GameMode.DECEPTION, [], rng) for _ in range(100)}
    assert picks == {"pear", "peach"}


def test_deception_mode_without_pairs_uses_another_pack_word(pack, rng):
    for _ in range(50):
        word = select_impostor_word("book", pack, GameMode.DECEPTION, [], rng)
        assert word in WORDS and word != "book"


def test_deception_mode_with_single_word_pack_falls_back_to_sentinel(rng):
    lonely = WordPack(pack_id="one", words=["apple"])
    assert select_impostor_word("apple", lonely, GameMode.DECEPTION, [], rng) == BLANK_WORD


def test_deception_mode_prefers_unused_pairs(pack):
    rng = random.Random(7)
    picks = Counter(select_impostor_word("apple", pack, GameMode.DECEPTION, ["pear"], rng) for _ in range(2000))
    assert picks["peach"] > picks["pear"]


@pytest.mark.parametrize("count", [3, 4, 10, 20])
def test_partition_sizes(rng, count):
    ids = [f"p{i}" for i in range(count)]
    impostors, innocents = partition_roles(ids, 1, rng)
    assert len(impostors) == 1
    assert len(innocents) == count - 1
    assert set(impostors) | set(innocents) == set(ids)
    assert not set(impostors) & set(innocents)


def test_partition_is_roughly_uniform():
    rng = random.Random(99)
    ids = ["a", "b", "c", "d"]
    picks = Counter(partition_roles(ids, 1, rng)[0][0] for _ in range(4000))
    assert set(picks) == set(ids)
    for count in picks.values():
        assert 800 < count < 1200


def test_draw_roles(pack, rng):
    ids = ["a", "b", "c"]
    draw = draw_roles(ids, 1, pack, GameMode.BLANK, RoundHistory(), rng)
    assert draw.crew_word in WORDS
    assert draw.impostor_word == BLANK_WORD
    assert len(draw.impostor_ids) == 1
    impostor = draw.impostor_ids[0]
    assert draw.role_for(impostor) == PlayerRole.IMPOSTOR
    assert draw.word_for(impostor) == BLANK_WORD
    for pid in draw.innocent_ids:
        assert draw.role_for(pid) == PlayerRole.INNOCENT
        assert draw.word_for(pid) == draw.crew_word


def test_draw_roles_needs_three_players(pack, rng):
    with pytest.raises(InsufficientPlayers) as exc:
        draw_roles(["a", "b"], 1, pack, GameMode.BLANK, RoundHistory(), rng)
    assert isinstance(exc.value, Conflict)


def test_draw_roles_rejects_too_many_impostors(pack, rng):
    with pytest.raises(TooManyImpostors):
        draw_roles(["a", "b", "c"], 3, pack, GameMode.BLANK, RoundHistory(), rng)


def test_consecutive_rounds_rotate_words(pack, rng):
    """Five rounds on a five word pack use every word once."""
    history = RoundHistory()
    seen = []
    for _ in range(5):
        draw = draw_roles(["a", "b", "c"], 1, pack, GameMode.BLANK, history, rng)
        seen.append(draw.crew_word)
        history.crew_words.insert(0, draw.crew_word)
    assert sorted(seen) == sorted(WORDS)
