"""
Persistencia de visitas: log append-only en la tabla `visits`.

- apply_delta() solo encola; un hilo aparte escribe los hits en lotes
- Si una escritura falla se registra en el log y el lote se descarta
  (el contador en memoria sigue siendo la fuente de verdad)
- load_snapshot() reproduce el log al arrancar con una sola consulta agrupada
"""
import logging
import queue
import threading
import time
from datetime import datetime, timezone, tzinfo
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from ..database import SessionLocal
from ..exceptions import PersistenceWriteFailed
from ..models.visit import Visit
from ..utils import day_key, ensure_utc
from .counter_store import HitRecord, SiteCounter

logger = logging.getLogger(__name__)

# Señal para que el hilo escritor termine
_STOP = object()


class VisitLogPersistence:
    """
    Usage:
        log = VisitLogPersistence(SessionLocal, tz=timezone.utc)
        counters = log.load_snapshot()  # antes de aceptar tráfico
        log.start()
        log.apply_delta("example.com", "/", utc_now())
        log.close()  # vacía la cola y detiene el hilo
    """

    def __init__(
        self,
        session_factory=None,
        tz: tzinfo = timezone.utc,
        batch_size: int = 500,
        flush_interval: float = 1.0,
    ):
        self._session_factory = session_factory or SessionLocal
        self._tz = tz
        self._batch_size = max(1, batch_size)
        self._flush_interval = flush_interval
        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._written = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="visit-log-writer", daemon=True)
        self._thread.start()
        logger.info("✅ Escritor del log de visitas iniciado")

    def apply_delta(self, domain: str, path: str, timestamp: datetime) -> None:
        """Encola un hit para escribirlo. Nunca bloquea la ingesta."""
        self._queue.put_nowait(HitRecord(domain=domain, path=path, received_at=ensure_utc(timestamp)))

    def flush(self) -> None:
        """Espera a que todos los hits encolados se hayan escrito (o descartado)."""
        if self.running:
            self._queue.join()
            return

        # Sin hilo escritor: se vacía la cola en el hilo actual
        batch = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                batch.append(item)
            self._queue.task_done()
        for start in range(0, len(batch), self._batch_size):
            self._write_batch(batch[start:start + self._batch_size])

    def close(self, timeout: float = 5.0) -> None:
        if not self.running:
            self.flush()
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(f"⚠️ El escritor del log no terminó en {timeout}s; quedan {self._queue.qsize()} hits pendientes")
        else:
            logger.info(f"✅ Log de visitas cerrado ({self._written} escritas, {self._failed} descartadas)")
        self._thread = None

    def _run(self) -> None:
        stopping = False
        while not stopping:
            batch, stopping = self._collect_batch()
            if batch:
                self._write_batch(batch)
            for _ in range(len(batch) + (1 if stopping else 0)):
                self._queue.task_done()

    def _collect_batch(self) -> Tuple[List[HitRecord], bool]:
        item = self._queue.get()
        if item is _STOP:
            return [], True

        batch = [item]
        deadline = time.monotonic() + self._flush_interval
        while len(batch) < self._batch_size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                item = self._queue.get(timeout=remaining)
            except queue.Empty:
                break
            if item is _STOP:
                return batch, True
            batch.append(item)
        return batch, False

    def _write_batch(self, batch: List[HitRecord]) -> None:
        session = None
        try:
            session = self._session_factory()
            session.add_all([
                Visit(
                    domain=hit.domain,
                    path=hit.path,
                    timestamp=hit.received_at,
                    visit_date=day_key(hit.received_at, self._tz),
                )
                for hit in batch
            ])
            session.commit()
            self._written += len(batch)
        except Exception as e:
            if session is not None:
                session.rollback()
            self._failed += len(batch)
            error = PersistenceWriteFailed(f"No se pudieron guardar {len(batch)} visitas")
            logger.error(f"❌ {error.to_detail()}: {e}", exc_info=True)
        finally:
            if session is not None:
                session.close()

    def load_snapshot(self) -> List[SiteCounter]:
        """
        Reconstruye los contadores de todos los dominios a partir del log.
        Agrupa por (dominio, día, página) y arma los totales en Python.
        """
        session = self._session_factory()
        try:
            rows = (
                session.query(
                    Visit.domain,
                    Visit.visit_date,
                    Visit.path,
                    func.count(Visit.id).label("visits"),
                    func.min(Visit.timestamp).label("first_visit"),
                    func.max(Visit.timestamp).label("last_visit"),
                )
                .group_by(Visit.domain, Visit.visit_date, Visit.path)
                .all()
            )
        finally:
            session.close()

        sites: Dict[str, dict] = {}
        for row in rows:
            first = ensure_utc(row.first_visit)
            last = ensure_utc(row.last_visit)
            site = sites.get(row.domain)
            if site is None:
                site = {"total": 0, "daily": {}, "pages": {}, "first": first, "last": last}
                sites[row.domain] = site

            site["total"] += row.visits
            site["daily"][row.visit_date] = site["daily"].get(row.visit_date, 0) + row.visits
            site["pages"][row.path] = site["pages"].get(row.path, 0) + row.visits
            site["first"] = min(site["first"], first)
            site["last"] = max(site["last"], last)

        counters = [
            SiteCounter(
                domain=domain,
                total=site["total"],
                daily_counts=MappingProxyType(dict(sorted(site["daily"].items()))),
                page_counts=MappingProxyType(dict(site["pages"])),
                first_visit=site["first"],
                last_visit=site["last"],
            )
            for domain, site in sites.items()
        ]
        logger.info(f"📂 Log de visitas reproducido: {len(rows)} grupos, {len(counters)} dominios")
        return counters

    def health_check(self) -> dict:
        session = None
        try:
            session = self._session_factory()
            total_records = session.query(func.count(Visit.id)).scalar() or 0
            return {
                "status": "ok",
                "total_records": total_records,
                "pending_writes": self._queue.qsize(),
                "failed_writes": self._failed,
            }
        except Exception as e:
            logger.warning(f"⚠️ Health check de la base de datos falló: {e}")
            return {"status": "error", "message": "Base de datos no disponible"}
        finally:
            if session is not None:
                session.close()
