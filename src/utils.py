from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utc_now() -> datetime:
    """Instante actual en UTC (con tzinfo)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Union[datetime, str]) -> datetime:
    """
    Normaliza un timestamp a UTC con tzinfo.

    SQLite devuelve los DateTime sin zona horaria (y en agregados a veces como texto),
    así que los valores naive se interpretan como UTC.

    Ejemplos:
    - datetime(2026, 1, 1, 10, 0) -> 2026-01-01 10:00:00+00:00
    - "2026-01-01 10:00:00" -> 2026-01-01 10:00:00+00:00
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_timezone(name: str) -> tzinfo:
    """Devuelve la zona horaria de referencia para agrupar visitas por día."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Zona horaria desconocida: {name}") from e


def local_day(ts: datetime, tz: tzinfo) -> date:
    """Fecha de calendario de un instante en la zona de referencia."""
    return ensure_utc(ts).astimezone(tz).date()


def day_key(ts: datetime, tz: tzinfo) -> str:
    """Clave YYYY-MM-DD del día de calendario de un instante."""
    return local_day(ts, tz).isoformat()


def trailing_days(today: date, days: int) -> List[date]:
    """
    Últimos `days` días de calendario incluyendo hoy, en orden ascendente.

    Usa aritmética de fechas (no de segundos), así los cambios de horario de verano
    no mueven los límites de la ventana.
    """
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
