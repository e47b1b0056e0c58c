"""
Priority scoring for (match, court) pairs.

    score = wait_minutes
          + ROUND_COEFFICIENT * (group_max_round - round + 1)
          + division_bonus            (lagging division only)
          + category_boost            (operator boost, until it expires)
          - ADJACENT_DIVISION_PENALTY (division already playing next door)
          - MIXED_SPLIT_PENALTY       (mixed doubles on the other division's half)

While both divisions have mixed doubles waiting, courts 1..ceil(n/2) belong to
division 1 and the rest to division 2 for mixed doubles.

Blocked matches score -1 and are never selected. Ranking is score descending,
then created_at ascending, then id, so equal scores resolve deterministically.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from court_dispatch.models.court import GENDER_FEMALE, GENDER_MALE, Court
from court_dispatch.models.match import Match
from court_dispatch.services.dispatch_settings import DispatchSettings
from court_dispatch.services.division_balance import DivisionBias
from court_dispatch.services.rest_tracker import BlockStatus
from court_dispatch.services.round_gate import group_key

ROUND_COEFFICIENT = 100
ADJACENT_DIVISION_PENALTY = 30
MIXED_SPLIT_PENALTY = 1000
BLOCKED_SCORE = -1.0

MIXED_DOUBLES = "mixed_doubles"


@dataclass
class ScoringContext:
    now: datetime
    group_max_round: Mapping[str, int]
    bias: DivisionBias
    settings: DispatchSettings = field(default_factory=DispatchSettings)
    # court number -> division currently on that court
    court_divisions: Mapping[int, int] = field(default_factory=dict)
    court_count: int = 0
    mixed_split: bool = False


@dataclass
class ScoredCandidate:
    match: Match
    score: float
    block: BlockStatus

    @property
    def blocked(self) -> bool:
        return self.block.blocked


def natural_gender(tournament_type: Optional[str]) -> Optional[str]:
    """mens_* -> male, womens_* -> female, anything else has no preference."""
    if not tournament_type:
        return None
    if tournament_type.startswith("mens_"):
        return GENDER_MALE
    if tournament_type.startswith("womens_"):
        return GENDER_FEMALE
    return None


def adjacent_divisions(court: Court, court_divisions: Mapping[int, int]) -> Set[int]:
    return {
        court_divisions[n] for n in (court.number - 1, court.number + 1) if n in court_divisions
    }


def mixed_split_active(waiting: Iterable[Match]) -> bool:
    divisions = {m.division for m in waiting if m.tournament_type == MIXED_DOUBLES}
    return {1, 2} <= divisions


def mixed_split_division(court_number: int, court_count: int) -> int:
    return 1 if court_number <= math.ceil(court_count / 2) else 2


def score_match(
    match: Match,
    context: ScoringContext,
    blocked: bool = False,
    court: Optional[Court] = None,
) -> float:
    if blocked:
        return BLOCKED_SCORE

    wait_minutes = (context.now - match.created_at).total_seconds() / 60
    group_max = context.group_max_round.get(group_key(match), match.round_number)
    round_score = ROUND_COEFFICIENT * (group_max - match.round_number + 1)

    division_bonus = 0
    if context.bias.preferred_division is not None and match.division == context.bias.preferred_division:
        division_bonus = context.bias.division_bonus_base

    score = wait_minutes + round_score + division_bonus
    score += context.settings.active_boost(match.tournament_type, context.now)

    if court is not None and match.division in adjacent_divisions(court, context.court_divisions):
        score -= ADJACENT_DIVISION_PENALTY

    if (
        court is not None
        and context.mixed_split
        and context.court_count > 0
        and match.tournament_type == MIXED_DOUBLES
        and match.division != mixed_split_division(court.number, context.court_count)
    ):
        score -= MIXED_SPLIT_PENALTY
    return score


def _rank_key(candidate: ScoredCandidate):
    return (-candidate.score, candidate.match.created_at, candidate.match.id or 0)


def rank_candidates(candidates: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
    """Unblocked first by score; blocked candidates always sort last."""
    return sorted(candidates, key=lambda c: (c.blocked,) + _rank_key(c))


def select_for_court(
    court: Court,
    matches: Sequence[Match],
    context: ScoringContext,
    blocks: Dict[int, BlockStatus],
) -> Optional[ScoredCandidate]:
    """
    Best unblocked match for this court, or None.

    Requeue-first matches (returned by a court freeze) form a leading tier. Within a
    tier, matches whose natural gender equals the court's preferred gender are
    ranked first; if there are none, the whole tier is ranked.
    """
    scored = [
        ScoredCandidate(match=m, score=score_match(m, context, court=court), block=blocks[m.id])
        for m in matches
        if not blocks[m.id].blocked
    ]
    if not scored:
        return None

    requeued = [c for c in scored if c.match.requeue_first]
    tier = requeued or scored

    if court.preferred_gender:
        affine = [c for c in tier if natural_gender(c.match.tournament_type) == court.preferred_gender]
        if affine:
            tier = affine

    return rank_candidates(tier)[0]
