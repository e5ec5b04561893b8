# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .visit import Visit

__all__ = [
    "Visit",
]
