"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to and a message that is safe to
show to the client. Underlying driver or storage details are logged where the
error is raised and never placed in ``message``.
"""

from __future__ import annotations


class RecuerdosError(Exception):
    status_code = 500
    default_message = "Error interno del servidor"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(RecuerdosError):
    status_code = 400
    default_message = "Faltan datos"


class Unauthenticated(RecuerdosError):
    status_code = 401
    default_message = "No autenticado"


class Forbidden(RecuerdosError):
    status_code = 403
    default_message = "Token inválido o expirado"


class InvalidCredentials(RecuerdosError):
    status_code = 400
    default_message = "Usuario o contraseña incorrectos"


class Conflict(RecuerdosError):
    status_code = 400
    default_message = "El usuario ya existe"


class NotFound(RecuerdosError):
    status_code = 404
    default_message = "Recuerdo no encontrado"


class StorageUnavailable(RecuerdosError):
    status_code = 500
    default_message = "Error al subir imagen"


class DatabaseUnavailable(RecuerdosError):
    status_code = 500
    default_message = "Error de base de datos"
