"""
Round eligibility: within a {tournament_type}_{division} group only the earliest
unfinished round may be dispatched.

The minimum is taken over every unfinished match of the group (waiting, calling
or playing), so round R+1 stays invisible to the scorer while any round-R match
is still queued or on court.
"""
from typing import Dict, Iterable, Mapping, Optional

from court_dispatch.models.match import STATUS_COMPLETED, Match

REASON_PREVIOUS_ROUND = "previous round pending"


def group_key(match: Match) -> str:
    return f"{match.tournament_type}_{match.division}"


def min_round_by_group(matches: Iterable[Match]) -> Dict[str, int]:
    """Earliest unfinished round per group."""
    min_rounds: Dict[str, int] = {}
    for m in matches:
        if m.status == STATUS_COMPLETED:
            continue
        key = group_key(m)
        current = min_rounds.get(key)
        if current is None or m.round_number < current:
            min_rounds[key] = m.round_number
    return min_rounds


def max_round_by_group(matches: Iterable[Match]) -> Dict[str, int]:
    """Last round per group, counting every match regardless of status."""
    max_rounds: Dict[str, int] = {}
    for m in matches:
        key = group_key(m)
        if m.round_number > max_rounds.get(key, 0):
            max_rounds[key] = m.round_number
    return max_rounds


def is_round_eligible(
    match: Match,
    unfinished_in_group: Iterable[Match] = (),
    min_rounds: Optional[Mapping[str, int]] = None,
) -> bool:
    """
    True if match.round_number is the earliest unfinished round of its group.

    Pass min_rounds (from min_round_by_group) to reuse one cycle's minimums
    across many matches instead of recomputing them from unfinished_in_group.
    """
    if min_rounds is None:
        min_rounds = min_round_by_group(unfinished_in_group)
    min_round = min_rounds.get(group_key(match))
    if min_round is None:
        return True
    return match.round_number <= min_round
