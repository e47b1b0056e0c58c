"""
Division balance: the division that is behind on completed matches gets a score
bonus proportional to the progress gap, capped at DIVISION_BONUS_CAP.

Recomputed on every dispatch cycle; the bonus shrinks on its own as the lagging
division catches up.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from court_dispatch.models.match import STATUS_COMPLETED, Match

DIVISION_BONUS_CAP = 600
DIVISION_GAP_WEIGHT = 2000
BALANCED_DIVISIONS = (1, 2)


@dataclass(frozen=True)
class DivisionBias:
    preferred_division: Optional[int]
    division_bonus_base: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def division_progress(matches: Iterable[Match]) -> Dict[int, float]:
    """completed / total for divisions 1 and 2; a division with no matches counts as done."""
    totals: Dict[int, int] = {d: 0 for d in BALANCED_DIVISIONS}
    completed: Dict[int, int] = {d: 0 for d in BALANCED_DIVISIONS}
    for m in matches:
        if m.division not in totals:
            continue
        totals[m.division] += 1
        if m.status == STATUS_COMPLETED:
            completed[m.division] += 1
    return {d: (completed[d] / total if total > 0 else 1.0) for d, total in totals.items()}


def compute_division_bias(all_matches: Iterable[Match]) -> DivisionBias:
    progress = division_progress(all_matches)

    # Lowest progress wins; on a tie the higher-numbered division is preferred
    preferred = min(progress, key=lambda d: (progress[d], -d))
    gap = max(progress.values()) - min(progress.values())
    bonus = min(DIVISION_BONUS_CAP, _round_half_up(gap * DIVISION_GAP_WEIGHT))
    return DivisionBias(preferred_division=preferred, division_bonus_base=bonus)
