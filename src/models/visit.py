from sqlalchemy import Column, Integer, String, DateTime, Index

from ..database import Base


class Visit(Base):
    """
    Log append-only de visitas (una fila por hit).
    Se reproduce al arrancar para reconstruir los contadores en memoria.
    """
    __tablename__ = "visits"
    __table_args__ = (
        Index("idx_visits_domain_path", "domain", "path"),
        Index("idx_visits_domain_date", "domain", "visit_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(100), index=True, nullable=False)
    path = Column(String(200), default="/", nullable=False)
    # Instante UTC en que el servidor recibió el hit
    timestamp = Column(DateTime(timezone=True), index=True, nullable=False)
    # Día YYYY-MM-DD en la zona horaria de referencia, calculado al escribir
    visit_date = Column(String(10), nullable=False)
