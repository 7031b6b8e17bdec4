# app/db/models/prediction.py
from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db.session import Base
from datetime import datetime

PICK_FIELDS = (
    "qualifying_top3",
    "sprint_qualifying_top3",
    "sprint_race_top3",
    "race_top3",
)

SCORE_FIELDS = (
    "score_qualifying",
    "score_sprint_qualifying",
    "score_sprint_race",
    "score_race",
    "score_total",
)


class Prediction(Base):
    __tablename__ = "predictions"
    __table_args__ = (
        # Un usuario solo puede hacer 1 predicción por evento y temporada
        UniqueConstraint("user_id", "season_year", "event_id", name="uq_user_season_event"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    event_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    season_year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Podios elegidos (slugs de apellido, máx 3, sin repetir)
    qualifying_top3: Mapped[list[str]] = mapped_column(JSON, default=list)
    sprint_qualifying_top3: Mapped[list[str]] = mapped_column(JSON, default=list)
    sprint_race_top3: Mapped[list[str]] = mapped_column(JSON, default=list)
    race_top3: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Foto del weekend_start al crear la predicción; no se recalcula nunca
    locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Solo lo escribe el motor de puntuación
    score_qualifying: Mapped[int] = mapped_column(Integer, default=0)
    score_sprint_qualifying: Mapped[int] = mapped_column(Integer, default=0)
    score_sprint_race: Mapped[int] = mapped_column(Integer, default=0)
    score_race: Mapped[int] = mapped_column(Integer, default=0)
    score_total: Mapped[int] = mapped_column(Integer, default=0)
    scored_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    # Relaciones
    user: Mapped["User"] = relationship("User", back_populates="predictions")

    @property
    def picks(self) -> dict[str, list[str]]:
        return {field: list(getattr(self, field) or []) for field in PICK_FIELDS}
