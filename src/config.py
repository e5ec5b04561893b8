import os
import logging

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./visits.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} no es un entero válido, usando {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} no es un número válido, usando {default}")
        return default


class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "Visit Counter API"

    @property
    def environment(self) -> str:
        # Si hay PORT (plataforma de deploy) o ENV=production, es producción
        env = os.getenv("ENV", "").lower()
        if env == "production" or os.getenv("PORT"):
            return "production"
        return "development"

    @property
    def cors_origin(self) -> str:
        # Por defecto se permite cualquier origen: el embed se carga desde sitios de terceros
        return os.getenv("CORS_ORIGIN", "*")

    @property
    def database_url(self) -> str:
        return os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL

    @property
    def counter_timezone(self) -> str:
        # Zona horaria con la que se agrupan las visitas por día
        return os.getenv("COUNTER_TIMEZONE", "UTC").strip() or "UTC"

    @property
    def persistence_enabled(self) -> bool:
        return os.getenv("PERSISTENCE_ENABLED", "true").strip().lower() not in ("0", "false", "no", "off")

    @property
    def persistence_batch_size(self) -> int:
        return max(1, _env_int("PERSISTENCE_BATCH_SIZE", 500))

    @property
    def persistence_flush_interval(self) -> float:
        return max(0.0, _env_float("PERSISTENCE_FLUSH_INTERVAL", 1.0))


# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None

def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance

def clear_settings_cache():
    """Limpia la instancia de settings (aunque no es necesario con propiedades dinámicas)."""
    global _settings_instance
    _settings_instance = None
