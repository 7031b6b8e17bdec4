"""
Scheduler de puntuación.

Cada hora (y una vez poco después de arrancar) busca los eventos del año en
curso cuyo fin de semana ya terminó, espera un margen para que los resultados
sean fiables y lanza el motor de puntuación. La puntuación es idempotente, así
que la marca de "ya puntuado" solo sirve para no repetir llamadas al proveedor:
es una caché en memoria con caducidad y tamaño máximo.
"""

import asyncio
import enum
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from app.core import config
from app.core.clock import utcnow
from app.core.errors import NotFound
from app.db.models.event import Event
from app.services.provider import ProviderClient
from app.services.scoring import ScoreOutcome, score_event

logger = logging.getLogger(__name__)

EventKey = tuple[str, int]


class EventPhase(str, enum.Enum):
    UNELAPSED = "unelapsed"
    BUFFERING = "buffering"
    DUE = "due"
    SCORED = "scored"


class ScoredEventCache:
    """
    Conjunto de (event_id, season_year) con TTL; expulsa primero el más antiguo.
    Lo comparten el tick (hilo del scheduler) y la puntuación manual (threadpool).
    """

    def __init__(self, ttl_seconds: float, max_entries: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[EventKey, float] = OrderedDict()
        self._lock = threading.Lock()

    def _purge(self) -> None:
        # Llamar con el lock cogido
        now = self._clock()
        for key in [k for k, expires in self._entries.items() if expires <= now]:
            del self._entries[key]

    def add(self, key: EventKey) -> None:
        with self._lock:
            self._purge()
            self._entries.pop(key, None)
            self._entries[key] = self._clock() + self.ttl_seconds
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __contains__(self, key: EventKey) -> bool:
        with self._lock:
            self._purge()
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._entries)

    def keys(self) -> list[EventKey]:
        with self._lock:
            self._purge()
            return list(self._entries)


@dataclass
class TickReport:
    scored: list[EventKey] = field(default_factory=list)
    skipped: list[EventKey] = field(default_factory=list)
    failed: list[EventKey] = field(default_factory=list)


class ScoringScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        provider: ProviderClient,
        buffer: timedelta = timedelta(hours=config.SCORING_BUFFER_HOURS),
        marker: ScoredEventCache | None = None,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.buffer = buffer
        self.marker = marker or ScoredEventCache(
            config.SCORED_MARKER_TTL_SECONDS, config.SCORED_MARKER_MAX_ENTRIES
        )

    def phase(self, event: Event, now: datetime) -> EventPhase:
        if now < event.weekend_end:
            return EventPhase.UNELAPSED
        if now < event.weekend_end + self.buffer:
            return EventPhase.BUFFERING
        if (event.event_id, event.season_year) in self.marker:
            return EventPhase.SCORED
        return EventPhase.DUE

    def _score(self, db: Session, event: Event, now: datetime) -> ScoreOutcome:
        outcome = score_event(
            db,
            self.provider,
            event.event_id,
            event.season_year,
            event.sprint_flag,
            now,
        )
        # Solo se marca si el motor terminó sin lanzar
        self.marker.add((event.event_id, event.season_year))
        return outcome

    def tick(self, now: datetime | None = None) -> TickReport:
        now = now or utcnow()
        report = TickReport()
        logger.info("Buscando eventos terminados para puntuar...")

        db = self.session_factory()
        try:
            events = (
                db.query(Event)
                .filter(Event.season_year == now.year, Event.weekend_end < now)
                .order_by(Event.weekend_end)
                .all()
            )

            for event in events:
                key = (event.event_id, event.season_year)
                try:
                    phase = self.phase(event, now)
                    if phase is EventPhase.BUFFERING:
                        logger.debug("%s terminado, esperando margen hasta %s", event.name, event.weekend_end + self.buffer)
                    if phase is not EventPhase.DUE:
                        report.skipped.append(key)
                        continue

                    logger.info("Puntuando %s (%s, sprint=%s)", event.name, event.event_id, event.sprint_flag)
                    outcome = self._score(db, event, now)
                except Exception:
                    # Sigue siendo elegible en el próximo tick
                    db.rollback()
                    logger.exception("Fallo puntuando %s", event.name)
                    report.failed.append(key)
                    continue

                logger.info("%s puntuado: %s", event.name, outcome.actual.as_dict())
                report.scored.append(key)
        finally:
            db.close()

        return report

    def manual_score(self, event_id: str, season_year: int, now: datetime | None = None):
        """Ignora margen y marca. Los errores llegan tal cual al administrador."""
        now = now or utcnow()
        db = self.session_factory()
        try:
            event = (
                db.query(Event)
                .filter(Event.event_id == event_id, Event.season_year == season_year)
                .first()
            )
            if not event:
                raise NotFound(f"Evento {event_id} ({season_year}) no encontrado")

            logger.info("Puntuación manual de %s (%s, %s)", event.name, event_id, season_year)
            outcome = self._score(db, event, now)
            return event.name, outcome
        finally:
            db.close()

    async def run_forever(
        self,
        interval: float = config.SCORING_INTERVAL_SECONDS,
        startup_delay: float = config.SCORING_STARTUP_DELAY_SECONDS,
    ) -> None:
        # Un tick que aún corre no se interrumpe: los solapes son inofensivos
        logger.info("Scheduler de puntuación iniciado (cada %ss)", interval)
        await asyncio.sleep(startup_delay)
        while True:
            try:
                await asyncio.to_thread(self.tick)
            except Exception:
                logger.exception("Error comprobando eventos terminados")
            await asyncio.sleep(interval)
