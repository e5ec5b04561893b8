"""
API Router para registrar visitas (lo llama el script embebido en cada carga de página).
"""
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import Response

from ..dependencies import get_ingestion_service
from ..exceptions import VisitCounterError
from ..schemas.counter_schema import CountRequest, CountResponse
from ..services.ingestion_service import HitResult, IngestionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["counter"])

# Nombre de función JS válido para JSONP (ej: visitCounter_1700000000000, VisitCounter.cb)
JSONP_CALLBACK_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")
MAX_CALLBACK_LENGTH = 100


def _to_response(result: HitResult) -> CountResponse:
    return CountResponse(
        success=result.success,
        domain=result.domain,
        page=result.page,
        count=result.count,
        today_count=result.today_count,
        page_count=result.page_count,
        timestamp=result.timestamp,
    )


def _record(service: IngestionService, domain, page) -> CountResponse:
    try:
        return _to_response(service.record(domain, page))
    except VisitCounterError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Error al registrar visita: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error interno del servidor")


@router.get("/count/{domain}", response_model=CountResponse)
def count_visit(
    domain: str,
    page: Optional[str] = None,
    callback: Optional[str] = None,
    x_page_path: Optional[str] = Header(default=None),
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Registra una visita para `domain`.
    - La página viene en `?page=` o en el header `X-Page-Path` (por defecto '/')
    - Si se envía `?callback=`, responde JSONP para el script embebido
    """
    if callback is not None and (
        len(callback) > MAX_CALLBACK_LENGTH or not JSONP_CALLBACK_RE.match(callback)
    ):
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_callback", "message": "Callback JSONP no válido"},
        )

    response = _record(service, domain, page if page is not None else x_page_path)

    if callback:
        body = f"{callback}({response.model_dump_json(by_alias=True)});"
        return Response(content=body, media_type="application/javascript")
    return response


@router.post("/count", response_model=CountResponse)
def count_visit_post(
    request: CountRequest,
    service: IngestionService = Depends(get_ingestion_service),
):
    """Registra una visita enviando `{domain, page}` en el body."""
    return _record(service, request.domain, request.page)
