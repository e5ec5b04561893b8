"""
Script para cargar visitas de prueba en el log (últimos 30 días, 5 dominios de demo).
Solo inserta si la tabla `visits` está vacía.
Ejecutar: python -m scripts.seed_demo_visits
"""
import random
from datetime import datetime, time, timedelta, timezone

from src.config import get_settings
from src.database import Base, SessionLocal, engine
from src.models.visit import Visit
from src.utils import day_key, get_timezone, utc_now

DEMO_DOMAINS = [
    "example.com",
    "mysite.it",
    "blog.esempio.org",
    "shop.test.com",
    "portfolio.dev",
]
DAYS = 30


def build_demo_visits(tz, today=None, rng=None):
    """Genera entre 1 y 15 visitas por dominio y por día; ~30% van a /about."""
    rng = rng or random.Random()
    today = today or utc_now().astimezone(tz).date()
    visits = []
    for offset in range(DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        for domain in DEMO_DOMAINS:
            for _ in range(rng.randint(1, 15)):
                local_time = time(rng.randrange(24), rng.randrange(60))
                ts = datetime.combine(day, local_time, tzinfo=tz).astimezone(timezone.utc)
                visits.append(Visit(
                    domain=domain,
                    path="/about" if rng.random() > 0.7 else "/",
                    timestamp=ts,
                    visit_date=day_key(ts, tz),
                ))
    return visits


def seed_demo_visits():
    settings = get_settings()
    tz = get_timezone(settings.counter_timezone)
    print(f"📂 Base de datos: {settings.database_url}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(Visit).count()
        if existing > 0:
            print(f"✅ La tabla 'visits' ya tiene {existing} registros, no se cargan datos de prueba")
            return

        print("🌱 Insertando datos de prueba...")
        visits = build_demo_visits(tz)
        db.add_all(visits)
        db.commit()
        print(f"✅ Insertados {len(visits)} registros de prueba")
    except Exception as e:
        db.rollback()
        print(f"❌ Error al insertar datos de prueba: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_visits()
