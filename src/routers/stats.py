from dataclasses import asdict
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_stats_service
from ..exceptions import VisitCounterError
from ..schemas.counter_schema import (
    DailyVisitsOut,
    SiteStatsOut,
    SiteSummaryOut,
    SitesResponse,
    VisitsByDateResponse,
)
from ..services.stats_service import DEFAULT_WINDOW_DAYS, StatsService
from ..utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stats"])


@router.get("/sites", response_model=SitesResponse)
def get_sites(service: StatsService = Depends(get_stats_service)):
    """
    Lista todos los sitios con visitas registradas.
    Ordena por total de visitas (descendente) y desempata por dominio.
    """
    try:
        sites = [SiteSummaryOut.model_validate(asdict(s)) for s in service.all_sites_summary()]
        return SitesResponse(total_sites=len(sites), sites=sites, timestamp=utc_now())
    except Exception as e:
        logger.error(f"Error al obtener sitios: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error interno del servidor")


@router.get("/stats/visits-by-date", response_model=VisitsByDateResponse)
def get_visits_by_date(
    domain: Optional[str] = None,
    days: int = DEFAULT_WINDOW_DAYS,
    service: StatsService = Depends(get_stats_service),
):
    """
    Serie de visitas por día para gráficos.

    - Cubre los últimos `days` días (por defecto 30), incluyendo hoy
    - Los días sin visitas aparecen con 0
    - Sin `domain` suma las visitas de todos los sitios
    """
    try:
        series = service.visits_by_date(domain=domain, window_days=days)
        return VisitsByDateResponse(
            domain=domain,
            days=days,
            visits=[DailyVisitsOut(date=d.date, visits=d.visits) for d in series],
        )
    except VisitCounterError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Error al calcular visitas por fecha: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error interno del servidor")


@router.get("/stats/{domain}", response_model=SiteStatsOut)
def get_site_stats(domain: str, service: StatsService = Depends(get_stats_service)):
    """
    Estadísticas de un sitio: total, días activos, primera/última visita,
    visitas de hoy, de la semana y del mes, más el detalle por día y por página.
    """
    try:
        return SiteStatsOut.model_validate(asdict(service.site_stats(domain)))
    except VisitCounterError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Error al obtener estadísticas de {domain}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error interno del servidor")
