import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.models.match import STATUS_CALLING, STATUS_WAITING
from court_dispatch.services import auto_dispatch_runner
from court_dispatch.services.auto_dispatch_runner import AutoDispatchRunner, run_auto_dispatch_tick
from court_dispatch.services.dispatch_engine import dispatch_all
from tests.helpers import add_match, seed_tournament


def test_tick_only_dispatches_enabled_tournaments(session: Session):
    on, _ = seed_tournament(session, court_genders=(None,), auto_dispatch_enabled=True, default_rest_minutes=0)
    off, _ = seed_tournament(session, court_genders=(None,), auto_dispatch_enabled=False, default_rest_minutes=0)
    m_on = add_match(session, on.id)
    m_off = add_match(session, off.id)

    assert run_auto_dispatch_tick(session) == 1

    session.refresh(m_on)
    session.refresh(m_off)
    assert m_on.status == STATUS_CALLING
    assert m_off.status == STATUS_WAITING


def test_run_once_swallows_store_errors(engine):
    def failing_tick(session):
        raise SQLAlchemyError("no such table")

    runner = AutoDispatchRunner(engine, interval_seconds=60, tick=failing_tick)
    assert runner.run_once() == 0


def test_runner_ticks_until_stopped(engine):
    ticked = threading.Event()

    def tick(session):
        ticked.set()
        return 0

    runner = AutoDispatchRunner(engine, interval_seconds=0.01, tick=tick)
    runner.start()
    try:
        assert ticked.wait(timeout=2)
        assert runner.running
    finally:
        runner.stop(timeout=2)
    assert not runner.running


def test_toggling_auto_dispatch_through_config(session: Session):
    tournament, _ = seed_tournament(session, court_genders=(None,), default_rest_minutes=0)
    m = add_match(session, tournament.id)

    assert run_auto_dispatch_tick(session) == 0

    config = session.exec(select(DispatchConfig).where(DispatchConfig.tournament_id == tournament.id)).one()
    config.auto_dispatch_enabled = True
    session.add(config)
    session.commit()

    assert run_auto_dispatch_tick(session) == 1
    session.refresh(m)
    assert m.status == STATUS_CALLING


def test_runner_survives_unexpected_tick_errors(engine):
    calls = []
    ticked_twice = threading.Event()

    def tick(session):
        calls.append(1)
        if len(calls) >= 2:
            ticked_twice.set()
        raise TypeError("can't compare offset-naive and offset-aware datetimes")

    runner = AutoDispatchRunner(engine, interval_seconds=0.01, tick=tick)
    assert runner.run_once() == 0
    runner.start()
    try:
        assert ticked_twice.wait(timeout=2)
        assert runner.running
    finally:
        runner.stop(timeout=2)
    assert len(calls) > 1


def test_tick_continues_past_a_failing_tournament(session: Session, monkeypatch):
    broken, _ = seed_tournament(session, court_genders=(None,), auto_dispatch_enabled=True, default_rest_minutes=0)
    healthy, _ = seed_tournament(session, court_genders=(None,), auto_dispatch_enabled=True, default_rest_minutes=0)
    add_match(session, broken.id)
    m = add_match(session, healthy.id)

    def dispatch_or_fail(session, tournament_id, **kw):
        if tournament_id == broken.id:
            raise TypeError("bad category boost")
        return dispatch_all(session, tournament_id, **kw)

    monkeypatch.setattr(auto_dispatch_runner, "dispatch_all", dispatch_or_fail)

    assert run_auto_dispatch_tick(session) == 1
    session.refresh(m)
    assert m.status == STATUS_CALLING
