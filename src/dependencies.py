"""
Dependencias para inyectar los servicios en los endpoints de FastAPI.
Los servicios se crean una sola vez al iniciar la app y viven en `app.state`.
"""
from typing import Optional

from fastapi import Request

from .services.counter_store import CounterStore
from .services.ingestion_service import IngestionService
from .services.persistence_service import VisitLogPersistence
from .services.stats_service import StatsService


def get_counter_store(request: Request) -> CounterStore:
    return request.app.state.counter_store


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service


def get_persistence(request: Request) -> Optional[VisitLogPersistence]:
    return getattr(request.app.state, "persistence", None)
