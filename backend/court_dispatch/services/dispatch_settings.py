"""
Immutable snapshot of a tournament's dispatch configuration.

The allocation planner and the policy filters take this value explicitly, so a
dispatch cycle is a function of (courts, matches, settings, now) only.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from court_dispatch.models.dispatch_config import DEFAULT_REST_MINUTES, DispatchConfig

# Lower runs first in sequential mode
DEFAULT_TYPE_PRIORITY: Dict[str, int] = {
    "mens_doubles": 1,
    "womens_doubles": 2,
    "mixed_doubles": 3,
    "mens_singles": 4,
    "womens_singles": 5,
    "team_battle": 6,
}
UNKNOWN_TYPE_PRIORITY = 999


def naive_utc(value: datetime) -> datetime:
    """Offset-aware datetimes become naive UTC; naive ones are taken as UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        # fromisoformat() only accepts a trailing "Z" from Python 3.11
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    return naive_utc(value)


@dataclass(frozen=True)
class DispatchSettings:
    auto_dispatch_enabled: bool = False
    is_sequential_mode: bool = False
    finals_wait_mode: Mapping[str, bool] = field(default_factory=dict)
    default_rest_minutes: int = DEFAULT_REST_MINUTES
    enabled_tournament_types: Tuple[str, ...] = ()
    tournament_type_priority: Mapping[str, int] = field(default_factory=dict)
    category_boost: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Optional[DispatchConfig]) -> "DispatchSettings":
        if config is None:
            return cls()
        return cls(
            auto_dispatch_enabled=bool(config.auto_dispatch_enabled),
            is_sequential_mode=bool(config.is_sequential_mode),
            finals_wait_mode=dict(config.finals_wait_mode or {}),
            default_rest_minutes=(
                config.default_rest_minutes if config.default_rest_minutes is not None else DEFAULT_REST_MINUTES
            ),
            enabled_tournament_types=tuple(config.enabled_tournament_types or ()),
            tournament_type_priority=dict(config.tournament_type_priority or {}),
            category_boost=dict(config.category_boost or {}),
        )

    def type_priority(self, tournament_type: str) -> int:
        if tournament_type in self.tournament_type_priority:
            return int(self.tournament_type_priority[tournament_type])
        return DEFAULT_TYPE_PRIORITY.get(tournament_type, UNKNOWN_TYPE_PRIORITY)

    def finals_wait(self, key: str) -> bool:
        return bool(self.finals_wait_mode.get(key))

    def active_boost(self, tournament_type: str, now: datetime) -> float:
        """Score boost for a tournament type, 0 once it has expired."""
        entry = self.category_boost.get(tournament_type)
        if not entry:
            return 0.0
        value = entry.get("value") if isinstance(entry, dict) else entry
        expires_at = entry.get("expires_at") if isinstance(entry, dict) else None
        if not value:
            return 0.0
        if expires_at is not None and naive_utc(now) >= parse_timestamp(expires_at):
            return 0.0
        return float(value)
