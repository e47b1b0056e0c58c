from court_dispatch.models.court import Court
from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.models.match import Match
from court_dispatch.models.player_rest import PlayerRest
from court_dispatch.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Court",
    "Match",
    "DispatchConfig",
    "PlayerRest",
]
