"""Errores de dominio del motor de votación.

Los servicios lanzan estas excepciones; main.py registra un único handler que
las convierte en respuestas JSON con su status_code.
"""


class VoteServiceError(Exception):
    status_code = 400
    default_message = "vote service error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class VotingClosed(VoteServiceError):
    status_code = 403
    default_message = "voting is currently closed"


class UnregisteredCode(VoteServiceError):
    status_code = 403
    default_message = "QR code is not registered"


class EntrantNotFound(VoteServiceError):
    status_code = 404
    default_message = "car not found"


class EntrantNotEligible(VoteServiceError):
    status_code = 400
    default_message = "car is not eligible for voting"


class CategoryNotFound(VoteServiceError):
    status_code = 404
    default_message = "category not found"


class ValidationError(VoteServiceError):
    status_code = 400
    default_message = "invalid request"


class StorageError(VoteServiceError):
    """Fallo del Record Store. La excepción original queda en __cause__."""
    status_code = 500
    default_message = "storage error"
