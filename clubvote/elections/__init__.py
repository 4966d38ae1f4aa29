# clubvote/elections/__init__.py
# The election integrity core: registry, eligibility ledger, ballot box and tabulator.

from clubvote.elections.ballot_box import BallotBox
from clubvote.elections.eligibility import EligibilityLedger
from clubvote.elections.registry import ElectionRegistry
from clubvote.elections.tabulator import ResultsSummary, ResultsTabulator, determine_winner

__all__ = [
    'BallotBox',
    'EligibilityLedger',
    'ElectionRegistry',
    'ResultsSummary',
    'ResultsTabulator',
    'determine_winner',
]
