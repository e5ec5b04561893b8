"""
Errores del contador de visitas.

Cada error lleva el código HTTP con el que los routers lo reportan al cliente.
"""


class VisitCounterError(Exception):
    """Error base del servicio."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Error interno del servidor"):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


class InvalidDomain(VisitCounterError):
    status_code = 400
    code = "invalid_domain"


class InvalidPath(VisitCounterError):
    status_code = 400
    code = "invalid_path"


class InvalidWindow(VisitCounterError):
    status_code = 400
    code = "invalid_window"


class NotFound(VisitCounterError):
    status_code = 404
    code = "not_found"


class PersistenceWriteFailed(VisitCounterError):
    # Solo se registra en el log, nunca llega al cliente
    code = "persistence_write_failed"
