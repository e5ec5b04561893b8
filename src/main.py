import os
import time
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Configurar logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)
if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")
else:
    logger.warning(f"No se pudo cargar archivo .env desde: {env_path}")

from .config import get_settings, clear_settings_cache

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()

from .database import Base, engine, SessionLocal
from .dependencies import get_counter_store, get_persistence
from .models.visit import Visit  # noqa: F401
from .routers import counter, stats
from .schemas.counter_schema import HealthResponse
from .services.counter_store import CounterStore
from .services.ingestion_service import IngestionService
from .services.persistence_service import VisitLogPersistence
from .services.stats_service import StatsService
from .utils import get_timezone, utc_now

APP_VERSION = "1.0.0"


def create_tables():
    """Crea las tablas en la base de datos si no existen."""
    logger.info("Creando tablas en la base de datos...")
    Base.metadata.create_all(bind=engine)
    logger.info(f"✅ Tablas verificadas: {', '.join(Base.metadata.tables.keys())}")


def build_persistence(settings, tz):
    """Crea el log de visitas; si la base no está disponible se sigue solo en memoria."""
    if not settings.persistence_enabled:
        logger.info("Persistencia deshabilitada (PERSISTENCE_ENABLED=false), contadores solo en memoria")
        return None
    try:
        create_tables()
    except Exception as e:
        logger.error(f"❌ ERROR al crear tablas: {str(e)}", exc_info=True)
        logger.warning("⚠️ El servidor continuará sin persistencia, los contadores se perderán al reiniciar")
        return None
    return VisitLogPersistence(
        SessionLocal,
        tz=tz,
        batch_size=settings.persistence_batch_size,
        flush_interval=settings.persistence_flush_interval,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Arma el contador, reproduce el log de visitas y recién ahí acepta tráfico."""
    settings = get_settings()
    tz = get_timezone(settings.counter_timezone)
    logger.info(f"🕐 Zona horaria de referencia: {settings.counter_timezone}")

    persistence = build_persistence(settings, tz)
    store = CounterStore(tz=tz, persistence=persistence)

    if persistence is not None:
        try:
            store.load_snapshot(persistence.load_snapshot())
        except Exception as e:
            logger.error(f"❌ Error al cargar el log de visitas: {str(e)}", exc_info=True)
            logger.warning("⚠️ Se arranca con contadores vacíos")
        persistence.start()
    store.mark_ready()

    app.state.started_at = time.monotonic()
    app.state.counter_store = store
    app.state.persistence = persistence
    app.state.ingestion_service = IngestionService(store)
    app.state.stats_service = StatsService(store)

    logger.info(f"🚀 {settings.app_name} listo ({store.domain_count()} sitios)")
    yield

    if persistence is not None:
        persistence.close()


app_settings = get_settings()

app = FastAPI(title=app_settings.app_name, version=APP_VERSION, lifespan=lifespan)

# CORS abierto: el contador se embebe en sitios de cualquier dominio
allowed_origins = [origin.strip() for origin in app_settings.cors_origin.split(",") if origin.strip()]
logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Site-Domain", "X-Page-Path"],
)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Cuerpo o parámetros mal formados: 400 con el mismo formato que el resto de los errores."""
    logger.warning(f"⚠️ Request inválido en {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": {"error": "invalid_request", "message": "Parámetros no válidos"}},
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Include routers
app.include_router(counter.router, prefix="/api")
app.include_router(stats.router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {"message": "Visit Counter API", "version": APP_VERSION}


@app.get("/api/health", response_model=HealthResponse, tags=["health"])
def health(
    request: Request,
    store: CounterStore = Depends(get_counter_store),
    persistence: Optional[VisitLogPersistence] = Depends(get_persistence),
):
    """Health check: cantidad de sitios y si el contador ya cargó el log."""
    started_at = getattr(request.app.state, "started_at", None)

    ready = store is not None and store.ready
    return HealthResponse(
        status="ok" if ready else "starting",
        ready=ready,
        total_sites=store.domain_count() if store is not None else 0,
        uptime=time.monotonic() - started_at if started_at is not None else 0.0,
        version=APP_VERSION,
        timestamp=utc_now(),
        database=persistence.health_check() if persistence is not None else None,
    )


def run():
    """Levanta la app con uvicorn."""
    import uvicorn
    uvicorn.run(
        "src.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 3000)),
        reload=app_settings.environment == "development",
    )


if __name__ == "__main__":
    run()
