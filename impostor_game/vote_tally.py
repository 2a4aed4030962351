# impostor_game/vote_tally.py
"""
Vote Tally & Resolution.

Plurality with ties blocking elimination: a player is voted out only when they
hold the strictly highest, non-zero count. Innocents win only if that player is
an impostor; no elimination counts as an impostor win.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from impostor_game.models import MostVoted, RoundResult, WinState


def tally_votes(ballots: Iterable[Tuple[str, str]], names: Mapping[str, str]) -> Dict[str, dict]:
    """
    ballots: (voter_id, accused_id) pairs, at most one per voter.
    Returns {accused_id: {"count": n, "name": name}}.
    """
    counts: Dict[str, dict] = {}
    for _voter_id, accused_id in ballots:
        entry = counts.setdefault(accused_id, {"count": 0, "name": names.get(accused_id, "Unknown")})
        entry["count"] += 1
    return counts


def find_most_voted(vote_counts: Mapping[str, dict]) -> Optional[MostVoted]:
    """Unique, non-zero maximum or None."""
    max_votes = 0
    tied = 0
    leader = None
    for player_id, data in vote_counts.items():
        count = data["count"]
        if count > max_votes:
            max_votes = count
            leader = (player_id, data.get("name", "Unknown"))
            tied = 1
        elif count == max_votes and max_votes > 0:
            tied += 1

    if leader is None or tied != 1:
        return None
    return MostVoted(player_id=leader[0], name=leader[1], votes=max_votes)


def compute_result(vote_counts: Mapping[str, dict], impostor_ids: List[str], crew_word: str) -> RoundResult:
    most_voted = find_most_voted(vote_counts)
    if most_voted is not None and most_voted.player_id in impostor_ids:
        win = WinState.INNOCENT
    else:
        win = WinState.IMPOSTOR
    return RoundResult(
        impostor_ids=list(impostor_ids),
        crew_word=crew_word,
        win=win,
        vote_counts=dict(vote_counts),
        most_voted=most_voted,
    )
