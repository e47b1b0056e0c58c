"""
Candidate-pool policies applied before scoring, once per dispatch cycle.

- Enabled types: when configured, only the listed tournament types are dispatched.
- Sequential mode: per gender group, only tournament types already on court may
  run; if none are, only the type with the lowest priority number.
- Finals wait: the final of a {type}_{division} group is held until every other
  match of that group has completed.

Excluded matches are only skipped for this cycle; nothing is written.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from court_dispatch.models.match import ON_COURT_STATUSES, STATUS_COMPLETED, Match
from court_dispatch.services.dispatch_settings import DispatchSettings
from court_dispatch.services.priority_scorer import natural_gender
from court_dispatch.services.round_gate import group_key

REASON_TYPE_DISABLED = "tournament type disabled"
REASON_SEQUENTIAL = "waiting for earlier tournament type"
REASON_FINALS_WAIT = "final held until group completes"


def apply_enabled_types(
    candidates: Sequence[Match], settings: DispatchSettings
) -> Tuple[List[Match], Dict[int, str]]:
    if not settings.enabled_tournament_types:
        return list(candidates), {}
    enabled = set(settings.enabled_tournament_types)
    kept = [m for m in candidates if m.tournament_type in enabled]
    excluded = {m.id: REASON_TYPE_DISABLED for m in candidates if m.tournament_type not in enabled}
    return kept, excluded


def sequential_allowed_types(
    candidates: Sequence[Match], all_matches: Iterable[Match], settings: DispatchSettings
) -> Dict[Optional[str], Set[str]]:
    """Allowed tournament types per gender group (male / female / None)."""
    in_progress: Dict[Optional[str], Set[str]] = defaultdict(set)
    for m in all_matches:
        if m.status in ON_COURT_STATUSES:
            in_progress[natural_gender(m.tournament_type)].add(m.tournament_type)

    waiting_types: Dict[Optional[str], Set[str]] = defaultdict(set)
    for m in candidates:
        waiting_types[natural_gender(m.tournament_type)].add(m.tournament_type)

    allowed: Dict[Optional[str], Set[str]] = {}
    for gender, types in waiting_types.items():
        if in_progress.get(gender):
            allowed[gender] = set(in_progress[gender])
        else:
            first = min(types, key=lambda t: (settings.type_priority(t), t))
            allowed[gender] = {first}
    return allowed


def apply_sequential_mode(
    candidates: Sequence[Match], all_matches: Sequence[Match], settings: DispatchSettings
) -> Tuple[List[Match], Dict[int, str]]:
    if not settings.is_sequential_mode:
        return list(candidates), {}
    allowed = sequential_allowed_types(candidates, all_matches, settings)
    kept: List[Match] = []
    excluded: Dict[int, str] = {}
    for m in candidates:
        if m.tournament_type in allowed.get(natural_gender(m.tournament_type), set()):
            kept.append(m)
        else:
            excluded[m.id] = REASON_SEQUENTIAL
    return kept, excluded


def _final_group(match: Match, all_matches: Sequence[Match]) -> Optional[List[Match]]:
    """The match's group (third-place matches excluded) if match is its final, else None."""
    if match.is_third_place:
        return None
    key = group_key(match)
    group = [m for m in all_matches if group_key(m) == key and not m.is_third_place]
    if not group or match.round_number != max(m.round_number for m in group):
        return None
    return group


def is_group_final(match: Match, all_matches: Sequence[Match]) -> bool:
    return _final_group(match, all_matches) is not None


def is_held_final(match: Match, all_matches: Sequence[Match]) -> bool:
    """True if match is its group's final and some other match of the group is unfinished."""
    group = _final_group(match, all_matches)
    if group is None:
        return False
    return any(m.status != STATUS_COMPLETED for m in group if m.id != match.id)


def apply_finals_wait(
    candidates: Sequence[Match], all_matches: Sequence[Match], settings: DispatchSettings
) -> Tuple[List[Match], Dict[int, str]]:
    if not any(settings.finals_wait_mode.values()):
        return list(candidates), {}
    kept: List[Match] = []
    excluded: Dict[int, str] = {}
    for m in candidates:
        if settings.finals_wait(group_key(m)) and is_held_final(m, all_matches):
            excluded[m.id] = REASON_FINALS_WAIT
        else:
            kept.append(m)
    return kept, excluded


def filter_candidates(
    candidates: Sequence[Match], all_matches: Sequence[Match], settings: DispatchSettings
) -> Tuple[List[Match], Dict[int, str]]:
    """Run every policy in turn. Both sequential and finals-wait must pass."""
    pool, excluded = apply_enabled_types(candidates, settings)
    for policy in (apply_sequential_mode, apply_finals_wait):
        pool, dropped = policy(pool, all_matches, settings)
        excluded.update(dropped)
    return pool, excluded
