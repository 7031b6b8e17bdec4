"""Fixtures compartidas: base de datos SQLite temporal y proveedor falso."""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="podium-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ["CALENDAR_SYNC_ON_STARTUP"] = "0"

from datetime import datetime, timedelta

import httpx
import pytest
from jose import jwt

from app.core.config import SECRET_KEY, ALGORITHM
from app.db.session import Base, SessionLocal, engine
from app.db.models import _all  # noqa: F401
from app.db.models.event import Event
from app.db.models.user import User
from app.services.provider import ProviderClient


class FakeUpstream:
    """
    Rutas -> respuestas. Un valor puede ser un dict (200 con ese JSON), un
    entero (código de estado) o una lista que se consume respuesta a respuesta.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.sleeps = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        value = self.routes.get(path, 404)
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, int):
            return httpx.Response(value, json={"message": "error"})
        return httpx.Response(200, json=value)

    def client(self, max_retries=3, backoff=1.0) -> ProviderClient:
        http = httpx.Client(base_url="https://upstream.test", transport=httpx.MockTransport(self.handler))
        return ProviderClient(
            client=http,
            max_retries=max_retries,
            backoff=backoff,
            sleep=self.sleeps.append,
        )

    def count(self, path: str) -> int:
        return self.calls.count(path)


def race_results_payload(*names, missing=()):
    participations = []
    for i, name in enumerate(names, start=1):
        result = {} if name in missing else {"finishedPosition": i, "grid": i}
        participations.append({"driverId": name, "driver": {"lastName": name.title()}, "result": result})
    return {"participations": participations}


def qualifying_results_payload(*names):
    return {
        "results": [
            {"driverId": name, "driver": {"lastName": name.title()}, "position": i}
            for i, name in enumerate(names, start=1)
        ]
    }


def weekend_upstream(event_id="gp1", sprint=True, race=("verstappen", "norris", "leclerc"),
                     quali=("norris", "verstappen", "piastri"), sprint_race=("piastri", "norris", "russell"),
                     sprint_quali=("norris", "piastri", "verstappen")):
    base = f"/v2/grands-prix/{event_id}"
    races = [{"id": "r-main", "type": "MainRace"}]
    qualis = [{"id": "q-std", "type": "Standard"}]
    routes = {
        f"{base}/races/r-main/results": race_results_payload(*race),
        f"{base}/qualifying/q-std/results": qualifying_results_payload(*quali),
    }
    if sprint:
        races.append({"id": "r-sprint", "type": "SprintRace"})
        qualis.append({"id": "q-sprint", "type": "SprintShootOut"})
        routes[f"{base}/races/r-sprint/results"] = race_results_payload(*sprint_race)
        routes[f"{base}/qualifying/q-sprint/results"] = qualifying_results_payload(*sprint_quali)
    routes[f"{base}/races"] = {"items": races}
    routes[f"{base}/qualifying"] = {"items": qualis}
    return routes


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="user"):
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"user{n}@example.com", username=f"user{n}", role=role)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_event(db):
    def _make(event_id="gp1", season_year=2025, start=None, end=None, sprint_flag=True, name=None):
        start = start or datetime(2025, 7, 4, 11, 30)
        end = end or start + timedelta(days=2, hours=6)
        event = Event(
            event_id=event_id,
            season_year=season_year,
            name=name or f"GP {event_id}",
            sprint_flag=sprint_flag,
            weekend_start=start,
            weekend_end=end,
            sessions=[],
        )
        db.add(event)
        db.commit()
        return event

    return _make


def token_for(user) -> str:
    return jwt.encode({"sub": str(user.id)}, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}
