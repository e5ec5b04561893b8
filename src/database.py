# Configuración de base de datos usando SQLAlchemy.
#
# La base de datos es solo el log durable de visitas: el contador en memoria es la
# fuente de verdad mientras el proceso está vivo y el log se reproduce al arrancar.
#
# ESTRATEGIA DE BASE DE DATOS:
# - DESARROLLO LOCAL: SQLite local (visits.db) por defecto
# - PRODUCCIÓN: cualquier URL de SQLAlchemy (ej: PostgreSQL) vía DATABASE_URL

import logging
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import get_settings

logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = get_settings().database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    logger.info(f"Usando SQLite local: {DATABASE_URL}")
else:
    logger.info("Usando base de datos externa (DATABASE_URL configurada)")


def build_engine(url: str):
    """Crea el engine; SQLite necesita check_same_thread=False porque escribe un hilo aparte."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
