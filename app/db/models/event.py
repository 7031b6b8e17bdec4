# app/db/models/event.py
from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from app.db.session import Base


class Event(Base):
    """
    Un fin de semana de carrera. Lo escribe solo la sincronización del calendario
    (upsert por temporada + id del proveedor); nunca se borra.
    """
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("season_year", "event_id", name="uq_season_event"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, nullable=False, index=True)  # id del proveedor
    season_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    sprint_flag: Mapped[bool] = mapped_column(Boolean, default=False)

    # Derivados: inicio de FP1 y fin de la carrera principal (o inicio + 3h)
    weekend_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    weekend_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # [{"type": ..., "start_date": iso | None, "end_date": iso | None}, ...]
    sessions: Mapped[list[dict]] = mapped_column(JSON, default=list)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())
