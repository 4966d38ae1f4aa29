import pytest

from clubvote.authentication.identity import Identity
from clubvote.database.models import Vote
from clubvote.elections.tabulator import count_votes, determine_winner
from clubvote.errors import NotFound
from clubvote.extensions import db


@pytest.mark.parametrize("results, winner", [
    ({}, None),
    ({"a": 0, "b": 0}, None),
    ({"a": 3, "b": 3}, None),
    ({"a": 3, "b": 3, "c": 1}, None),
    ({"a": 1, "b": 4}, "b"),
    ({"only": 2}, "only"),
])
def test_determine_winner(results, winner):
    assert determine_winner(results) == winner


def test_results_hidden_from_voters_while_active(tabulator, ballot_box, active_election, voter):
    ballot_box.cast_vote(active_election.id, active_election.candidates[0].id, voter)
    assert tabulator.get_results(active_election.id, voter) == {}
    assert tabulator.get_results(active_election.id, None) == {}


def test_admin_sees_live_results(tabulator, ballot_box, active_election, admin, voter):
    first, second = active_election.candidates
    ballot_box.cast_vote(active_election.id, first.id, voter)

    assert tabulator.get_results(active_election.id, admin) == {first.id: 1, second.id: 0}


def test_closed_results_are_public(tabulator, ballot_box, registry, active_election, admin, voter):
    first, second = active_election.candidates
    ballot_box.cast_vote(active_election.id, second.id, voter)
    registry.update_status(admin, active_election.id, "closed")

    expected = {first.id: 0, second.id: 1}
    assert tabulator.get_results(active_election.id, voter) == expected
    assert tabulator.get_results(active_election.id, None) == expected


def test_every_candidate_is_listed_without_votes(tabulator, make_election, admin):
    election = make_election(candidates=("A", "B", "C"))
    results = tabulator.get_results(election.id, admin)
    assert results == {c.id: 0 for c in election.candidates}


def test_unknown_election(tabulator, admin):
    with pytest.raises(NotFound):
        tabulator.get_results("missing", admin)


def test_sum_matches_ballot_count(tabulator, ballot_box, registry, make_election, approve_voter, admin):
    election = make_election(candidates=("A", "B", "C"))
    voters = [Identity(id=f"member-{n}", email=f"member{n}@club.org", role="voter") for n in range(5)]
    for member in voters:
        approve_voter(election, member)
    registry.update_status(admin, election.id, "active")

    picks = [0, 1, 1, 2, 1]
    for member, pick in zip(voters, picks):
        ballot_box.cast_vote(election.id, election.candidates[pick].id, member)

    results = tabulator.get_results(election.id, admin)
    assert sum(results.values()) == db.session.scalar(
        db.select(db.func.count(Vote.id)).where(Vote.election_id == election.id)
    )
    assert results[election.candidates[1].id] == 3


def test_ballots_for_unknown_candidates_are_ignored(tabulator, active_election, admin):
    db.session.add(Vote(election_id=active_election.id, candidate_id="ghost"))
    db.session.commit()

    results = tabulator.get_results(active_election.id, admin)
    assert "ghost" not in results
    assert sum(results.values()) == 0


def test_counts_refresh_after_each_vote(tabulator, ballot_box, active_election, admin, voter):
    first = active_election.candidates[0]
    assert tabulator.get_results(active_election.id, admin)[first.id] == 0
    # Memoized counts are invalidated when a vote is cast
    ballot_box.cast_vote(active_election.id, first.id, voter)
    assert tabulator.get_results(active_election.id, admin)[first.id] == 1


def test_count_votes_is_memoized(active_election):
    assert count_votes(active_election.id) == {}
    db.session.add(Vote(election_id=active_election.id, candidate_id=active_election.candidates[0].id))
    db.session.commit()
    # Written behind the service's back, so the cached value stands
    assert count_votes(active_election.id) == {}


def test_summary_for_voters_while_active(tabulator, active_election, voter):
    summary = tabulator.summarize(active_election.id, voter)
    assert summary.visible is False
    assert summary.to_dict()["results"] == {}
    assert summary.winner_id is None


def test_summary_announces_winner_only_when_closed(tabulator, ballot_box, registry, active_election, admin, voter):
    first, second = active_election.candidates
    ballot_box.cast_vote(active_election.id, second.id, voter)

    live = tabulator.summarize(active_election.id, admin)
    assert live.visible is True
    assert live.ranking == [second.id, first.id]
    assert live.winner_id is None

    registry.update_status(admin, active_election.id, "closed")
    final = tabulator.summarize(active_election.id, voter)
    assert final.winner_id == second.id
    assert final.total_votes == 1
    assert final.to_dict()["winnerId"] == second.id


def test_summary_ranking_breaks_ties_by_ballot_order(tabulator, registry, make_election, admin):
    election = make_election(candidates=("First", "Second", "Third"))
    registry.update_status(admin, election.id, "closed")

    summary = tabulator.summarize(election.id, admin)
    assert summary.ranking == [c.id for c in election.candidates]
    assert summary.winner_id is None
