import sys
from app.db.session import SessionLocal, Base, engine
from app.db.models import _all
from app.core import config
from app.services.provider import ProviderClient
from app.services.calendar_sync import sync_calendar


def run(season_year: int, provider: ProviderClient | None = None):
    """Sincroniza a mano el calendario de una temporada (p.ej. antes del primer arranque)."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    provider = provider or ProviderClient()

    try:
        report = sync_calendar(db, provider, season_year)
        print(f"✅ {len(report.synced)} eventos sincronizados para {season_year}")
        if report.skipped:
            print("⚠️  Sin fechas todavía:", ", ".join(report.skipped))
        return report
    finally:
        db.close()


if __name__ == "__main__":
    year = int(sys.argv[1]) if len(sys.argv) > 1 else config.CALENDAR_SEASON
    run(year)
