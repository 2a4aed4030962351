"""
Full round flow through the HTTP API: start, ready, discuss, vote, results.
"""
import pytest

from conftest import auth, join_room
from impostor_game.db_models import DBAssignment, DBReadyMark, DBRoom, DBRound, DBVote


def start(client, room, pack="classic", mode="BLANK"):
    host = room["players"]["Alice"]
    return client.post("/api/game/start", json={"pack": pack, "mode": mode}, headers=auth(host["token"]))


def ready_all(client, room):
    for name in ("Alice", "Bob", "Cara"):
        response = client.post("/api/game/ready", headers=auth(room["players"][name]["token"]))
        assert response.status_code == 200
    return response.json()


def to_vote_phase(client, room):
    assert start(client, room).status_code == 200
    ready_all(client, room)
    response = client.post("/api/game/end-discussion", headers=auth(room["players"]["Alice"]["token"]))
    assert response.status_code == 200
    assert response.json()["new_status"] == "VOTE"


def vote(client, room, voter, accused):
    return client.post(
        "/api/game/vote",
        json={"accused_player_id": room["players"][accused]["id"]},
        headers=auth(room["players"][voter]["token"]),
    )


def room_status(db, code):
    db.expire_all()
    return db.query(DBRoom).filter(DBRoom.code == code).one().status


def impostor_ids(db, code):
    db.expire_all()
    round_ = db.query(DBRound).filter(DBRound.room_code == code).order_by(DBRound.round_number.desc()).first()
    return [
        a.player_id for a in db.query(DBAssignment).filter(
            DBAssignment.round_id == round_.id, DBAssignment.role == "IMPOSTOR"
        )
    ]


def test_start_game_deals_one_impostor(client, db, room_of_three):
    """Test starting a game with three players."""
    response = start(client, room_of_three)
    assert response.status_code == 200
    data = response.json()
    assert data["round_number"] == 1
    assert data["new_status"] == "REVEAL"

    code = room_of_three["code"]
    assert room_status(db, code) == "REVEAL"
    assignments = db.query(DBAssignment).filter(DBAssignment.round_id == data["round_id"]).all()
    assert len(assignments) == 3
    assert sum(1 for a in assignments if a.role == "IMPOSTOR") == 1
    assert {a.player_id for a in assignments} == {p["id"] for p in room_of_three["players"].values()}


def test_only_connected_players_are_dealt_in(client, db, room_of_three):
    """Disconnected and kicked players get no assignment."""
    code = room_of_three["code"]
    host = room_of_three["players"]["Alice"]
    dan = join_room(client, code, "Dan", device_id="dev-dan")
    eve = join_room(client, code, "Eve", device_id="dev-eve")
    client.post("/api/presence/disconnect", headers=auth(dan["token"]))
    client.post("/api/room/kick", json={"player_id": eve["player"]["id"]}, headers=auth(host["token"]))

    data = start(client, room_of_three).json()
    assignments = db.query(DBAssignment).filter(DBAssignment.round_id == data["round_id"]).all()
    dealt = {a.player_id for a in assignments}
    assert len(assignments) == 3
    assert dealt == {p["id"] for p in room_of_three["players"].values()}
    assert dan["player"]["id"] not in dealt
    assert eve["player"]["id"] not in dealt

    response = client.get("/api/game/assignment", headers=auth(dan["token"]))
    assert response.status_code == 404


def test_assignment_carries_round_details(client, room_of_three):
    host = room_of_three["players"]["Alice"]
    client.post(
        "/api/game/start",
        json={"pack": "animals", "mode": "DECEPTION", "timer_seconds": 120},
        headers=auth(host["token"]),
    )
    data = client.get("/api/game/assignment", headers=auth(room_of_three["players"]["Bob"]["token"])).json()
    assert data["timer_seconds"] == 120
    round_ = data["round"]
    assert round_["id"] == data["round_id"]
    assert round_["round_number"] == 1
    assert round_["pack"] == "animals"
    assert round_["mode"] == "DECEPTION"
    assert round_["impostor_count"] == 1
    assert round_["timer_seconds"] == 120
    assert round_["started_at"].endswith("Z")
    assert "crew_word" not in round_


def test_blank_mode_impostor_sees_sentinel(client, db, room_of_three):
    start(client, room_of_three)
    round_ = db.query(DBRound).one()
    for name, player in room_of_three["players"].items():
        data = client.get("/api/game/assignment", headers=auth(player["token"])).json()
        if data["role"] == "IMPOSTOR":
            assert data["word_shown"] == "?"
        else:
            assert data["word_shown"] == round_.crew_word
        assert data["mode"] == "BLANK"


def test_deception_mode_impostor_sees_other_word(client, db, room_of_three):
    start(client, room_of_three, mode="DECEPTION")
    round_ = db.query(DBRound).one()
    assert round_.impostor_word not in ("?", round_.crew_word)
    impostor = db.query(DBAssignment).filter(DBAssignment.role == "IMPOSTOR").one()
    assert impostor.word_shown == round_.impostor_word


def test_start_requires_host(client, room_of_three):
    response = client.post("/api/game/start", json={"pack": "classic", "mode": "BLANK"},
                           headers=auth(room_of_three["players"]["Bob"]["token"]))
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


def test_start_requires_three_connected_players(client, room_of_three):
    client.post("/api/game/leave", headers=auth(room_of_three["players"]["Cara"]["token"]))
    response = start(client, room_of_three)
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_start_twice_is_rejected(client, room_of_three):
    assert start(client, room_of_three).status_code == 200
    response = start(client, room_of_three)
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidPhase"


def test_start_with_unknown_pack_falls_back_to_default_words(client, db, room_of_three):
    response = start(client, room_of_three, pack="no-such-pack")
    assert response.status_code == 200
    assert db.query(DBRound).one().crew_word in {"apple", "car", "book", "chair", "dog"}


def test_start_rejects_malformed_settings(client, room_of_three):
    host = room_of_three["players"]["Alice"]
    response = client.post("/api/game/start", json={"pack": "../etc", "mode": "BLANK"}, headers=auth(host["token"]))
    assert response.status_code == 422
    response = client.post("/api/game/start", json={"pack": "classic", "mode": "CHAOS"}, headers=auth(host["token"]))
    assert response.status_code == 422


def test_all_ready_moves_to_discussion_and_clears_ready_set(client, db, room_of_three):
    start(client, room_of_three)
    data = ready_all(client, room_of_three)
    assert data["all_ready"] is True
    assert data["ready_count"] == 3
    assert data["total_count"] == 3

    code = room_of_three["code"]
    assert room_status(db, code) == "DISCUSS"
    assert db.query(DBReadyMark).filter(DBReadyMark.room_code == code).count() == 0


def test_ready_twice_counts_once(client, room_of_three):
    start(client, room_of_three)
    token = room_of_three["players"]["Bob"]["token"]
    first = client.post("/api/game/ready", headers=auth(token)).json()
    second = client.post("/api/game/ready", headers=auth(token)).json()
    assert first["ready_count"] == 1
    assert second["ready_count"] == 1
    assert second["all_ready"] is False


def test_ready_outside_reveal_is_rejected(client, room_of_three):
    response = client.post("/api/game/ready", headers=auth(room_of_three["players"]["Bob"]["token"]))
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidPhase"


def test_host_can_force_discussion(client, db, room_of_three):
    start(client, room_of_three)
    client.post("/api/game/ready", headers=auth(room_of_three["players"]["Bob"]["token"]))
    response = client.post("/api/game/check-ready", headers=auth(room_of_three["players"]["Alice"]["token"]))
    assert response.status_code == 200
    assert response.json()["new_status"] == "DISCUSS"
    assert db.query(DBReadyMark).count() == 0


def test_force_discussion_requires_host(client, room_of_three):
    start(client, room_of_three)
    response = client.post("/api/game/check-ready", headers=auth(room_of_three["players"]["Cara"]["token"]))
    assert response.status_code == 403


def test_end_discussion_only_from_discussion(client, room_of_three):
    start(client, room_of_three)
    response = client.post("/api/game/end-discussion", headers=auth(room_of_three["players"]["Alice"]["token"]))
    assert response.status_code == 409


def test_majority_vote_resolves_round(client, db, room_of_three):
    to_vote_phase(client, room_of_three)
    assert vote(client, room_of_three, "Alice", "Bob").json()["all_voted"] is False
    assert vote(client, room_of_three, "Cara", "Bob").status_code == 200
    last = vote(client, room_of_three, "Bob", "Cara").json()
    assert last["all_voted"] is True
    assert last["total_votes"] == 3

    code = room_of_three["code"]
    assert room_status(db, code) == "REVEAL_RESULT"

    result = client.get("/api/game/results", headers=auth(room_of_three["players"]["Cara"]["token"])).json()
    assert result["mostVotedPlayer"]["name"] == "Bob"
    assert result["mostVotedPlayer"]["votes"] == 2
    bob_is_impostor = room_of_three["players"]["Bob"]["id"] in impostor_ids(db, code)
    assert result["win"] == ("INNOCENT" if bob_is_impostor else "IMPOSTOR")
    assert result["crewWord"] == db.query(DBRound).one().crew_word


def test_tie_with_abstention_means_impostor_win(client, room_of_three):
    to_vote_phase(client, room_of_three)
    vote(client, room_of_three, "Alice", "Bob")
    vote(client, room_of_three, "Bob", "Alice")
    response = client.post("/api/game/end-vote", headers=auth(room_of_three["players"]["Alice"]["token"]))
    assert response.json()["new_status"] == "REVEAL_RESULT"

    result = client.get("/api/game/results", headers=auth(room_of_three["players"]["Bob"]["token"])).json()
    assert result["mostVotedPlayer"] is None
    assert result["win"] == "IMPOSTOR"


def test_revote_overwrites_previous_ballot(client, db, room_of_three):
    to_vote_phase(client, room_of_three)
    vote(client, room_of_three, "Alice", "Bob")
    data = vote(client, room_of_three, "Alice", "Cara").json()
    cara_id = room_of_three["players"]["Cara"]["id"]
    assert data["total_votes"] == 1
    assert list(data["vote_counts"]) == [cara_id]
    assert db.query(DBVote).count() == 1

    votes = client.get("/api/game/votes", headers=auth(room_of_three["players"]["Bob"]["token"])).json()
    assert votes["vote_counts"][cara_id] == {"count": 1, "name": "Cara"}
    count = client.get("/api/game/vote-count", headers=auth(room_of_three["players"]["Bob"]["token"])).json()
    assert count["total_votes"] == 1


def test_vote_outside_voting_phase_is_rejected(client, room_of_three):
    start(client, room_of_three)
    response = vote(client, room_of_three, "Alice", "Bob")
    assert response.status_code == 409


def test_vote_for_unknown_player_is_rejected(client, room_of_three):
    to_vote_phase(client, room_of_three)
    response = client.post("/api/game/vote", json={"accused_player_id": "nobody"},
                           headers=auth(room_of_three["players"]["Bob"]["token"]))
    assert response.status_code == 404


def test_end_vote_requires_host_and_voting_phase(client, room_of_three):
    start(client, room_of_three)
    host = auth(room_of_three["players"]["Alice"]["token"])
    assert client.post("/api/game/end-vote", headers=host).status_code == 409
    ready_all(client, room_of_three)
    client.post("/api/game/end-discussion", headers=host)
    assert client.post("/api/game/end-vote", headers=auth(room_of_three["players"]["Bob"]["token"])).status_code == 403


def test_results_hidden_until_voting_ends(client, room_of_three):
    to_vote_phase(client, room_of_three)
    response = client.get("/api/game/results", headers=auth(room_of_three["players"]["Bob"]["token"]))
    assert response.status_code == 409


def test_play_again_returns_to_lobby_and_keeps_round_counter(client, db, room_of_three):
    to_vote_phase(client, room_of_three)
    host = auth(room_of_three["players"]["Alice"]["token"])
    vote(client, room_of_three, "Alice", "Bob")
    client.post("/api/game/end-vote", headers=host)
    first_word = db.query(DBRound).one().crew_word

    response = client.post("/api/game/play-again", headers=host)
    assert response.status_code == 200
    assert response.json()["new_status"] == "LOBBY"

    db.expire_all()
    room = db.query(DBRoom).one()
    assert room.current_round == 1
    assert db.query(DBVote).count() == 0
    assert db.query(DBAssignment).count() == 0
    assert db.query(DBRound).count() == 1

    data = start(client, room_of_three).json()
    assert data["round_number"] == 2
    second = db.query(DBRound).filter(DBRound.round_number == 2).one()
    assert second.crew_word != first_word


def test_play_again_only_from_results(client, room_of_three):
    response = client.post("/api/game/play-again", headers=auth(room_of_three["players"]["Alice"]["token"]))
    assert response.status_code == 409


@pytest.mark.parametrize("path", ["/api/game/ready", "/api/game/vote-count", "/api/game/results"])
def test_game_endpoints_require_session(client, path):
    method = client.get if path != "/api/game/ready" else client.post
    response = method(path)
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
