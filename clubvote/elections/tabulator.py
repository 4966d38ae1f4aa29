# clubvote/elections/tabulator.py
"""
Results Tabulator

Counts votes per candidate and enforces results visibility: the real tally is
shown once an election is closed, or to admins at any time. Everyone else gets
an empty mapping.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from clubvote.authentication.rbac import Permission, rbac_service
from clubvote.database.repositories import ElectionRepository, VoteRepository
from clubvote.errors import NotFound
from clubvote.extensions import cache
from clubvote.signals import election_changed, vote_cast

logger = logging.getLogger(__name__)


@cache.memoize()
def count_votes(election_id: str) -> Dict[str, int]:
    """Raw per-candidate counts straight from the ballot table."""
    return VoteRepository().counts_by_candidate(election_id)


@vote_cast.connect
@election_changed.connect
def _invalidate_counts(election_id, **kwargs):
    cache.delete_memoized(count_votes, election_id)


def determine_winner(results: Dict[str, int]) -> Optional[str]:
    """
    Strict maximum wins. A tie at the top, or an election without votes,
    has no winner.
    """
    if not results:
        return None
    max_votes = max(results.values())
    if max_votes == 0:
        return None
    leaders = [candidate_id for candidate_id, votes in results.items() if votes == max_votes]
    if len(leaders) > 1:
        return None
    return leaders[0]


@dataclass
class ResultsSummary:
    election_id: str
    visible: bool
    counts: Dict[str, int] = field(default_factory=dict)
    total_votes: int = 0
    ranking: List[str] = field(default_factory=list)
    winner_id: Optional[str] = None

    def to_dict(self):
        return {
            'electionId': self.election_id,
            'visible': self.visible,
            'results': self.counts,
            'totalVotes': self.total_votes,
            'ranking': self.ranking,
            'winnerId': self.winner_id,
        }


class ResultsTabulator:
    def __init__(self, elections=None):
        self.elections = elections or ElectionRepository()

    def _require(self, election_id):
        election = self.elections.get(election_id)
        if election is None:
            raise NotFound("Election not found")
        return election

    @staticmethod
    def can_view(election, caller):
        if election.status == 'closed':
            return True
        return caller is not None and rbac_service.has_permission(caller.role, Permission.VIEW_LIVE_RESULTS)

    def tally(self, election):
        results = {candidate.id: 0 for candidate in election.candidates}
        for candidate_id, votes in count_votes(election.id).items():
            # Ballots for unknown candidates are not counted
            if candidate_id in results:
                results[candidate_id] += votes
        return results

    def get_results(self, election_id, caller):
        election = self._require(election_id)
        if not self.can_view(election, caller):
            return {}
        return self.tally(election)

    def summarize(self, election_id, caller):
        election = self._require(election_id)
        if not self.can_view(election, caller):
            return ResultsSummary(election_id=election_id, visible=False)

        counts = self.tally(election)
        order = {candidate.id: candidate.position for candidate in election.candidates}
        ranking = sorted(counts, key=lambda cid: (-counts[cid], order[cid]))
        return ResultsSummary(
            election_id=election_id,
            visible=True,
            counts=counts,
            total_votes=sum(counts.values()),
            ranking=ranking,
            # Winners are only announced once voting is over
            winner_id=determine_winner(counts) if election.status == 'closed' else None,
        )
