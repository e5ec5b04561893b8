"""
Estadísticas derivadas de los contadores: totales, ventanas de hoy/semana/mes,
días activos y series diarias para gráficos.

Todo se calcula sobre snapshots del CounterStore; este servicio no guarda estado propio.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from ..exceptions import InvalidWindow, NotFound
from ..utils import local_day, trailing_days, utc_now
from .counter_store import CounterStore, SiteCounter

DEFAULT_WINDOW_DAYS = 30
MAX_WINDOW_DAYS = 365
WEEK_DAYS = 7
MONTH_DAYS = 30


@dataclass(frozen=True)
class SiteStats:
    domain: str
    total_visits: int
    active_days: int
    first_visit: datetime
    last_visit: datetime
    visits_today: int
    visits_this_week: int
    visits_this_month: int
    total_pages: int
    daily_counts: Dict[str, int]
    page_counts: Dict[str, int]


@dataclass(frozen=True)
class SiteSummary:
    domain: str
    total_visits: int
    visits_today: int
    total_pages: int
    first_visit: datetime
    last_visit: datetime


@dataclass(frozen=True)
class DailyVisits:
    date: str
    visits: int


def _window_total(counter: SiteCounter, today: date, days: int) -> int:
    return sum(counter.day_count(day.isoformat()) for day in trailing_days(today, days))


class StatsService:
    def __init__(self, store: CounterStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def _today(self) -> date:
        return local_day(self._clock(), self._store.tz)

    def site_stats(self, domain: str) -> SiteStats:
        """
        Estadísticas de un dominio.
        - visits_this_week: últimos 7 días de calendario incluyendo hoy
        - visits_this_month: últimos 30 días de calendario incluyendo hoy
        """
        counter = self._store.get_counter(domain)
        if counter is None:
            raise NotFound(f"Dominio no encontrado: {domain}")

        today = self._today()
        return SiteStats(
            domain=counter.domain,
            total_visits=counter.total,
            active_days=counter.active_days,
            first_visit=counter.first_visit,
            last_visit=counter.last_visit,
            visits_today=counter.day_count(today.isoformat()),
            visits_this_week=_window_total(counter, today, WEEK_DAYS),
            visits_this_month=_window_total(counter, today, MONTH_DAYS),
            total_pages=counter.total_pages,
            daily_counts=dict(counter.daily_counts),
            page_counts=dict(counter.page_counts),
        )

    def all_sites_summary(self) -> List[SiteSummary]:
        """Resumen por dominio, más visitados primero (desempate por nombre)."""
        today_key = self._today().isoformat()
        return [
            SiteSummary(
                domain=counter.domain,
                total_visits=counter.total,
                visits_today=counter.day_count(today_key),
                total_pages=counter.total_pages,
                first_visit=counter.first_visit,
                last_visit=counter.last_visit,
            )
            for counter in self._store.snapshot_all()
        ]

    def visits_by_date(
        self,
        domain: Optional[str] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> List[DailyVisits]:
        """
        Serie diaria de los últimos `window_days` días, en orden ascendente.

        Los días sin visitas aparecen con 0. Sin dominio se suman todos los sitios.
        Un dominio sin visitas devuelve la serie completa en cero.
        """
        if window_days < 1 or window_days > MAX_WINDOW_DAYS:
            raise InvalidWindow(f"La ventana debe estar entre 1 y {MAX_WINDOW_DAYS} días")

        if domain is None:
            counters = self._store.snapshot_all()
        else:
            counter = self._store.get_counter(domain)
            counters = [counter] if counter is not None else []

        series = []
        for day in trailing_days(self._today(), window_days):
            key = day.isoformat()
            series.append(DailyVisits(date=key, visits=sum(c.day_count(key) for c in counters)))
        return series
