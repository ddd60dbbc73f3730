"""
Taxonomie des erreurs applicatives.

Chaque erreur porte un status HTTP et un code stable (`code`) renvoyés au client
sous la forme {"error": <message>, "code": <code>} par les handlers de
ecoshop.app_setup.exceptions.
"""
from typing import Any, Optional


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Requête invalide", details: Any = None):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.details:
            body["details"] = self.details
        return body


class ProductNotFound(ValidationError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Produit {product_id} introuvable")
        self.product_id = product_id


class InsufficientStock(ValidationError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Stock insuffisant pour le produit {product_id} \"{product_name}\": "
            f"disponible {available}, demandé {requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentification requise"):
        super().__init__(message)


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Accès interdit"):
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Ressource introuvable"):
        super().__init__(message)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class InvalidStatusTransition(ConflictError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(f"Transition de statut interdite: {current} -> {target}")
        self.current = current
        self.target = target


class RateLimitError(ApiError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Trop de requêtes"):
        super().__init__(message)


class PaymentProviderError(ApiError):
    status_code = 502
    code = "PAYMENT_PROVIDER_ERROR"


class InternalError(ApiError):
    status_code = 500
    code = "INTERNAL_ERROR"
