"""
Almacén de contadores de visitas en memoria.

Diseño:
- Un SiteCounter por dominio con total, conteo por día y conteo por página
- Un lock por dominio: los hits de un mismo dominio se serializan, los de dominios
  distintos no compiten entre sí
- Un lock de registro solo para insertar dominios nuevos (el contador se publica
  ya con su primer hit, nunca existe un contador en cero)
- Las lecturas devuelven snapshots inmutables tomados bajo el lock del dominio
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from ..exceptions import PersistenceWriteFailed
from ..utils import day_key, ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/"


@dataclass(frozen=True)
class HitRecord:
    """Un hit validado, listo para aplicarse al contador."""
    domain: str
    path: str
    received_at: datetime


@dataclass(frozen=True)
class SiteCounter:
    """
    Snapshot inmutable de los contadores de un dominio.

    `daily_counts` está ordenado por fecha. Los mapas son de solo lectura.
    """
    domain: str
    total: int
    daily_counts: Mapping[str, int]
    page_counts: Mapping[str, int]
    first_visit: datetime
    last_visit: datetime

    @property
    def active_days(self) -> int:
        return len(self.daily_counts)

    @property
    def total_pages(self) -> int:
        return len(self.page_counts)

    def day_count(self, day: str) -> int:
        return self.daily_counts.get(day, 0)

    def page_count(self, path: str) -> int:
        return self.page_counts.get(path, 0)


class DomainTotal(NamedTuple):
    domain: str
    total: int
    last_visit: datetime


def _ranking_key(domain: str, total: int):
    # Más visitas primero, desempate alfabético por dominio
    return (-total, domain)


class _SiteCounterState:
    """Estado mutable de un dominio. Solo se toca con `lock` tomado (o antes de publicarse)."""

    __slots__ = ("domain", "lock", "total", "daily", "pages", "first_visit", "last_visit")

    def __init__(self, domain: str, first_visit: datetime):
        self.domain = domain
        self.lock = threading.Lock()
        self.total = 0
        self.daily: Dict[str, int] = {}
        self.pages: Dict[str, int] = {}
        self.first_visit = first_visit
        self.last_visit = first_visit

    def apply(self, day: str, path: str, timestamp: datetime) -> None:
        self.total += 1
        self.daily[day] = self.daily.get(day, 0) + 1
        self.pages[path] = self.pages.get(path, 0) + 1
        # Los hits concurrentes pueden llegar desordenados
        if timestamp < self.first_visit:
            self.first_visit = timestamp
        if timestamp > self.last_visit:
            self.last_visit = timestamp

    def merge(self, counter: SiteCounter) -> None:
        self.total += counter.total
        for day, count in counter.daily_counts.items():
            self.daily[day] = self.daily.get(day, 0) + count
        for path, count in counter.page_counts.items():
            self.pages[path] = self.pages.get(path, 0) + count
        self.first_visit = min(self.first_visit, ensure_utc(counter.first_visit))
        self.last_visit = max(self.last_visit, ensure_utc(counter.last_visit))

    def snapshot(self) -> SiteCounter:
        return SiteCounter(
            domain=self.domain,
            total=self.total,
            daily_counts=MappingProxyType(dict(sorted(self.daily.items()))),
            page_counts=MappingProxyType(dict(self.pages)),
            first_visit=self.first_visit,
            last_visit=self.last_visit,
        )


def _is_consistent(counter: SiteCounter) -> bool:
    return (
        counter.total > 0
        and sum(counter.daily_counts.values()) == counter.total
        and sum(counter.page_counts.values()) == counter.total
    )


class CounterStore:
    """
    Contadores de todos los dominios, seguros para escrituras y lecturas concurrentes.

    Usage:
        store = CounterStore(tz=timezone.utc, persistence=log)
        snapshot = store.record_hit("example.com", "/", utc_now())
        store.get_counter("example.com")  # SiteCounter o None
        store.list_domains()  # [DomainTotal(...), ...]

    Args:
        tz: Zona horaria de referencia para agrupar por día
        persistence: Adaptador opcional con `apply_delta(domain, path, timestamp)`;
            se llama después de cada hit y sus errores nunca llegan al llamador
    """

    def __init__(self, tz: tzinfo = timezone.utc, persistence=None):
        self._tz = tz
        self._persistence = persistence
        self._counters: Dict[str, _SiteCounterState] = {}
        self._registry_lock = threading.Lock()
        self._ready = False

    @property
    def tz(self) -> tzinfo:
        return self._tz

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        self._ready = True

    def record_hit(self, domain: str, path: Optional[str], timestamp: datetime) -> SiteCounter:
        """
        Registra un hit y devuelve el snapshot actualizado del dominio.

        El dominio ya debe venir validado. Crea el contador si no existe
        (exactamente una vez aunque haya primeros hits concurrentes).
        """
        path = path or DEFAULT_PATH
        timestamp = ensure_utc(timestamp)
        day = day_key(timestamp, self._tz)

        snapshot = None
        created = False
        state = self._counters.get(domain)
        if state is None:
            with self._registry_lock:
                state = self._counters.get(domain)
                if state is None:
                    state = _SiteCounterState(domain, timestamp)
                    state.apply(day, path, timestamp)
                    snapshot = state.snapshot()
                    self._counters[domain] = state
                    created = True

        if snapshot is None:
            with state.lock:
                state.apply(day, path, timestamp)
                snapshot = state.snapshot()

        if created:
            logger.info(f"🆕 Nuevo contador creado para {domain}")

        self._emit_delta(domain, path, timestamp)
        return snapshot

    def get_counter(self, domain: str) -> Optional[SiteCounter]:
        state = self._counters.get(domain)
        if state is None:
            return None
        with state.lock:
            return state.snapshot()

    def list_domains(self) -> List[DomainTotal]:
        """Dominios ordenados por total descendente y luego por nombre."""
        totals = []
        for state in self._states():
            with state.lock:
                totals.append(DomainTotal(state.domain, state.total, state.last_visit))
        totals.sort(key=lambda t: _ranking_key(t.domain, t.total))
        return totals

    def snapshot_all(self) -> List[SiteCounter]:
        """Snapshots de todos los dominios, con el mismo orden que list_domains()."""
        snapshots = []
        for state in self._states():
            with state.lock:
                snapshots.append(state.snapshot())
        snapshots.sort(key=lambda c: _ranking_key(c.domain, c.total))
        return snapshots

    def domain_count(self) -> int:
        return len(self._counters)

    def load_snapshot(self, counters: Iterable[SiteCounter]) -> int:
        """
        Carga los contadores iniciales (ej: reconstruidos desde el log) y marca el store como listo.

        Los valores se suman a lo que ya hubiera en memoria. Devuelve la cantidad de
        dominios cargados.
        """
        loaded = 0
        for counter in counters:
            if not _is_consistent(counter):
                logger.warning(f"⚠️ Snapshot inconsistente para {counter.domain}, se ignora")
                continue

            with self._registry_lock:
                state = self._counters.get(counter.domain)
                if state is None:
                    state = _SiteCounterState(counter.domain, ensure_utc(counter.first_visit))
                    state.merge(counter)
                    self._counters[counter.domain] = state
                    loaded += 1
                    continue

            with state.lock:
                state.merge(counter)
            loaded += 1

        self.mark_ready()
        logger.info(f"✅ Contadores cargados: {loaded} dominios")
        return loaded

    def _states(self) -> List[_SiteCounterState]:
        with self._registry_lock:
            return list(self._counters.values())

    def _emit_delta(self, domain: str, path: str, timestamp: datetime) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.apply_delta(domain, path, timestamp)
        except Exception as e:
            # El contador en memoria manda: el hit no se revierte
            error = PersistenceWriteFailed(f"No se pudo encolar la visita de {domain}")
            logger.error(f"❌ {error.to_detail()}: {e}", exc_info=True)
