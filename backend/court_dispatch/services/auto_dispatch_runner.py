"""
Periodic auto-dispatch trigger.

A daemon thread wakes every interval_seconds and runs one dispatch cycle for each
tournament whose config has auto_dispatch_enabled. It races freely with manual
"dispatch now" calls; the compare-and-set commits keep that safe.

A failing tournament is logged and skipped; a failing tick is logged and the
loop waits for the next one.
"""
import logging
import threading
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.services.dispatch_engine import dispatch_all
from court_dispatch.services.dispatch_settings import DispatchSettings

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


def run_auto_dispatch_tick(session: Session) -> int:
    """One tick: dispatch every tournament with auto dispatch on. Returns matches called."""
    configs = session.exec(select(DispatchConfig).where(DispatchConfig.auto_dispatch_enabled == True)).all()  # noqa: E712
    targets = [(config.tournament_id, DispatchSettings.from_config(config)) for config in configs]
    total = 0
    for tournament_id, settings in targets:
        try:
            total += dispatch_all(session, tournament_id, settings=settings)
        except Exception:
            session.rollback()
            logger.exception("Auto-dispatch failed for tournament %d", tournament_id)
    return total


class AutoDispatchRunner:
    def __init__(
        self,
        engine: Engine,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        tick: Callable[[Session], int] = run_auto_dispatch_tick,
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="auto-dispatch", daemon=True)
        self._thread.start()
        logger.info("Auto-dispatch runner started (every %.1fs)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def run_once(self) -> int:
        try:
            with Session(self.engine) as session:
                return self._tick(session)
        except SQLAlchemyError:
            logger.warning("Auto-dispatch tick failed: store unavailable", exc_info=True)
            return 0
        except Exception:
            logger.exception("Auto-dispatch tick failed")
            return 0

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            count = self.run_once()
            if count:
                logger.info("Auto-dispatch called %d matches", count)
