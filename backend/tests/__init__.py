# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from court_dispatch.models.court import Court  # noqa: F401
from court_dispatch.models.dispatch_config import DispatchConfig  # noqa: F401
from court_dispatch.models.match import Match  # noqa: F401
from court_dispatch.models.player_rest import PlayerRest  # noqa: F401
from court_dispatch.models.tournament import Tournament  # noqa: F401
