import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core import config
from app.core.errors import PodiumError, ValidationFailed
from app.core.deps import get_provider, get_scheduler

# IMPORTANTE: Importar Base y Engine para que funcione la creación de tablas
from app.db.session import engine, Base, SessionLocal

# Importar modelos para que SQLAlchemy los "vea" antes de crear las tablas
from app.db.models import _all

from app.api.predictions import router as predictions_router
from app.api.events import router as events_router
from app.api.admin import router as admin_router
from app.services.calendar_sync import sync_calendar

logger = logging.getLogger("podium")


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def startup_calendar_sync() -> None:
    # Si falla seguimos arrancando con el calendario que haya
    db = SessionLocal()
    try:
        logger.info("Sincronizando calendario %s...", config.CALENDAR_SEASON)
        sync_calendar(db, get_provider(), config.CALENDAR_SEASON)
    except Exception as e:
        logger.warning("Fallo sincronizando el calendario: %s", e)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Creamos las tablas en la base de datos
    Base.metadata.create_all(bind=engine)

    if config.CALENDAR_SYNC_ON_STARTUP:
        await asyncio.to_thread(startup_calendar_sync)

    task = None
    if config.SCHEDULER_ENABLED:
        task = asyncio.create_task(get_scheduler().run_forever())

    yield

    if task:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    get_provider().close()


app = FastAPI(
    title="Podium Predictions",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(PodiumError)
async def podium_error_handler(request: Request, exc: PodiumError):
    # El cliente distingue bloqueo, validación y errores reintentables
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.kind, "retryable": exc.transient},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Un cuerpo mal formado es un ValidationFailed más
    return JSONResponse(
        status_code=ValidationFailed.status_code,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "error": ValidationFailed.__name__,
            "retryable": ValidationFailed.transient,
        },
    )


# Conectamos las piezas (routers)
app.include_router(predictions_router)
app.include_router(events_router)
app.include_router(admin_router)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"message": "API de predicciones funcionando 🏎️"}

@app.get("/health")
def health():
    return {"ok": True}
