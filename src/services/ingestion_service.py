"""
Servicio de ingesta: valida y normaliza los hits antes de aplicarlos al contador.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from ..exceptions import InvalidDomain, InvalidPath
from ..utils import day_key, utc_now
from .counter_store import DEFAULT_PATH, CounterStore, HitRecord

logger = logging.getLogger(__name__)

MIN_DOMAIN_LENGTH = 3
MAX_DOMAIN_LENGTH = 100
MAX_PATH_LENGTH = 200


@dataclass(frozen=True)
class HitResult:
    """Respuesta de un hit registrado, con los conteos que muestra el embed."""
    domain: str
    page: str
    count: int
    today_count: int
    page_count: int
    timestamp: datetime
    success: bool = True


def normalize_domain(raw: Any) -> str:
    """
    Recorta el dominio y valida su largo (3 a 100 caracteres).
    Se respetan mayúsculas/minúsculas.
    """
    if not isinstance(raw, str):
        raise InvalidDomain("El dominio es obligatorio")
    domain = raw.strip()
    if not domain:
        raise InvalidDomain("El dominio es obligatorio")
    if len(domain) < MIN_DOMAIN_LENGTH or len(domain) > MAX_DOMAIN_LENGTH:
        raise InvalidDomain(
            f"El dominio debe tener entre {MIN_DOMAIN_LENGTH} y {MAX_DOMAIN_LENGTH} caracteres"
        )
    return domain


def normalize_path(raw: Any) -> str:
    """Recorta el path; vacío o ausente es '/'. Máximo 200 caracteres."""
    if raw is None:
        return DEFAULT_PATH
    if not isinstance(raw, str):
        raise InvalidPath("El path debe ser texto")
    path = raw.strip()
    if not path:
        return DEFAULT_PATH
    if len(path) > MAX_PATH_LENGTH:
        raise InvalidPath(f"El path no puede superar los {MAX_PATH_LENGTH} caracteres")
    return path


class IngestionService:
    def __init__(self, store: CounterStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def record(
        self,
        domain_raw: Any,
        path_raw: Any = None,
        client_timestamp: Optional[Any] = None,
    ) -> HitResult:
        """
        Valida el hit y lo registra.

        La validación ocurre antes de tocar el contador: si falla no se incrementa nada.
        El timestamp siempre lo pone el servidor; el del cliente se ignora para que
        relojes desfasados no ensucien el conteo por día.
        """
        domain = normalize_domain(domain_raw)
        path = normalize_path(path_raw)

        if client_timestamp is not None:
            logger.debug(f"Timestamp del cliente ignorado para {domain}: {client_timestamp}")

        hit = HitRecord(domain=domain, path=path, received_at=self._clock())
        snapshot = self._store.record_hit(hit.domain, hit.path, hit.received_at)
        today = day_key(hit.received_at, self._store.tz)

        return HitResult(
            domain=hit.domain,
            page=hit.path,
            count=snapshot.total,
            today_count=snapshot.day_count(today),
            page_count=snapshot.page_count(hit.path),
            timestamp=hit.received_at,
        )
