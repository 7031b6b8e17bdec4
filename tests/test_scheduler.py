import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from app.core.errors import NotFound, ResultsUnavailable
from app.db.models.prediction import Prediction
from app.db.session import SessionLocal
from app.services.scheduler import EventPhase, ScoredEventCache, ScoringScheduler
from conftest import FakeUpstream, weekend_upstream

END = datetime(2025, 7, 6, 17, 0)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _scheduler(routes, clock=None):
    upstream = FakeUpstream(routes)
    marker = ScoredEventCache(ttl_seconds=3600, max_entries=10, clock=clock or FakeClock())
    return upstream, ScoringScheduler(SessionLocal, upstream.client(), buffer=timedelta(hours=4), marker=marker)


def _predict(db, user, event_id="gp1"):
    db.add(Prediction(
        user_id=user.id, event_id=event_id, season_year=2025,
        locked_at=datetime(2025, 7, 4, 11, 30),
        qualifying_top3=[], sprint_qualifying_top3=[], sprint_race_top3=[],
        race_top3=["verstappen", "norris", "leclerc"],
    ))
    db.commit()


def test_phases(make_event):
    event = make_event(end=END)
    _, scheduler = _scheduler({})

    assert scheduler.phase(event, END - timedelta(minutes=1)) is EventPhase.UNELAPSED
    assert scheduler.phase(event, END) is EventPhase.BUFFERING
    assert scheduler.phase(event, END + timedelta(hours=3, minutes=59)) is EventPhase.BUFFERING
    assert scheduler.phase(event, END + timedelta(hours=4)) is EventPhase.DUE

    scheduler.marker.add(("gp1", 2025))
    assert scheduler.phase(event, END + timedelta(hours=4)) is EventPhase.SCORED


def test_tick_scores_due_events_once(db, make_user, make_event):
    make_event(end=END)
    _predict(db, make_user())
    upstream, scheduler = _scheduler(weekend_upstream())

    report = scheduler.tick(END + timedelta(hours=5))
    assert report.scored == [("gp1", 2025)]
    assert ("gp1", 2025) in scheduler.marker

    calls = len(upstream.calls)
    report = scheduler.tick(END + timedelta(hours=6))
    assert report.scored == []
    assert report.skipped == [("gp1", 2025)]
    assert len(upstream.calls) == calls

    db.expire_all()
    assert db.query(Prediction).one().score_total == 24


def test_tick_waits_for_buffer(make_event):
    make_event(end=END)
    upstream, scheduler = _scheduler(weekend_upstream())

    report = scheduler.tick(END + timedelta(hours=1))

    assert report.scored == []
    assert report.skipped == [("gp1", 2025)]
    assert upstream.calls == []


def test_tick_only_looks_at_current_year(make_event):
    make_event(event_id="old", season_year=2024, end=datetime(2024, 7, 7, 17, 0))
    upstream, scheduler = _scheduler({})

    report = scheduler.tick(END + timedelta(hours=5))

    assert report.scored == report.skipped == report.failed == []


def test_failing_event_does_not_stop_the_scan(make_event):
    make_event(event_id="gp0", end=END - timedelta(days=7))
    make_event(event_id="gp1", end=END)
    routes = weekend_upstream()
    routes["/v2/grands-prix/gp0/races"] = {"items": []}
    routes["/v2/grands-prix/gp0/qualifying"] = {"items": []}
    _, scheduler = _scheduler(routes)

    report = scheduler.tick(END + timedelta(hours=5))

    assert report.failed == [("gp0", 2025)]
    assert report.scored == [("gp1", 2025)]
    assert ("gp0", 2025) not in scheduler.marker

    # Sigue siendo elegible en el siguiente tick
    report = scheduler.tick(END + timedelta(hours=6))
    assert report.failed == [("gp0", 2025)]


def test_manual_score_bypasses_buffer_and_marker(db, make_user, make_event):
    make_event(end=END)
    _predict(db, make_user())
    upstream, scheduler = _scheduler(weekend_upstream())
    scheduler.marker.add(("gp1", 2025))

    name, outcome = scheduler.manual_score("gp1", 2025, END - timedelta(days=1))

    assert name == "GP gp1"
    assert outcome.predictions_scored == 1
    assert outcome.actual.race == ["verstappen", "norris", "leclerc"]
    assert upstream.count("/v2/grands-prix/gp1/races") == 1


def test_manual_score_errors_propagate(make_event):
    make_event(end=END)
    _, scheduler = _scheduler({
        "/v2/grands-prix/gp1/races": {"items": []},
        "/v2/grands-prix/gp1/qualifying": {"items": []},
    })

    with pytest.raises(NotFound):
        scheduler.manual_score("missing", 2025)
    with pytest.raises(ResultsUnavailable):
        scheduler.manual_score("gp1", 2025)
    assert ("gp1", 2025) not in scheduler.marker


def test_scored_cache_expires_and_is_bounded():
    clock = FakeClock()
    cache = ScoredEventCache(ttl_seconds=60, max_entries=2, clock=clock)

    cache.add(("a", 2025))
    clock.now += 30
    cache.add(("b", 2025))
    assert ("a", 2025) in cache

    clock.now += 31
    assert ("a", 2025) not in cache
    assert ("b", 2025) in cache

    cache.add(("c", 2025))
    cache.add(("d", 2025))
    assert len(cache) == 2
    assert cache.keys() == [("c", 2025), ("d", 2025)]


def test_phase_error_is_contained_to_its_event(make_event):
    make_event(event_id="gp0", end=END - timedelta(days=7))
    make_event(event_id="gp1", end=END)

    class BrokenPhase(ScoringScheduler):
        def phase(self, event, now):
            if event.event_id == "gp0":
                raise RuntimeError("phase roto")
            return super().phase(event, now)

    upstream = FakeUpstream(weekend_upstream())
    marker = ScoredEventCache(ttl_seconds=3600, max_entries=10, clock=FakeClock())
    scheduler = BrokenPhase(SessionLocal, upstream.client(), buffer=timedelta(hours=4), marker=marker)

    report = scheduler.tick(END + timedelta(hours=5))

    assert report.failed == [("gp0", 2025)]
    assert report.scored == [("gp1", 2025)]


def test_scored_cache_survives_concurrent_readers_and_writer():
    cache = ScoredEventCache(ttl_seconds=3600, max_entries=5000)
    for i in range(2000):
        cache.add((f"seed{i}", 2025))

    errors = []
    done = threading.Event()

    def reader():
        while not done.is_set():
            try:
                _ = ("seed0", 2025) in cache
                cache.keys()
                len(cache)
            except Exception as e:
                errors.append(e)
                return

    def writer():
        try:
            for i in range(5000):
                cache.add((f"w{i}", 2025))
        except Exception as e:
            errors.append(e)
        finally:
            done.set()

    threads = [threading.Thread(target=reader) for _ in range(3)] + [threading.Thread(target=writer)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert len(cache) == 5000


def test_run_forever_keeps_going_after_a_failing_tick():
    calls = []

    class FlakyScheduler(ScoringScheduler):
        def tick(self, now=None):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("tick roto")

    scheduler = FlakyScheduler(SessionLocal, FakeUpstream({}).client())

    async def drive():
        task = asyncio.create_task(scheduler.run_forever(interval=0, startup_delay=0))
        for _ in range(500):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(drive())

    assert len(calls) >= 2
