"""
Gestionnaires d'exceptions.
- ApiError (ecoshop.errors): status + {"error", "code"} (+ "details" pour la validation)
- HTTPException (dépendances FastAPI/Starlette, fastapi-limiter): même forme de corps
- RequestValidationError: 400 VALIDATION_ERROR (au lieu du 422 FastAPI)
- Exception inattendue: loggée et envoyée à Sentry, 500 INTERNAL_ERROR; message générique en production
"""
import logging
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ecoshop import config
from ecoshop.errors import ApiError

logger = logging.getLogger(__name__)

HTTP_STATUS_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMIT_EXCEEDED",
}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers d'erreurs: toute erreur sort en JSON {"error", "code"}.
    """
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("api_error path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_STATUS_CODES.get(exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": code},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Validation échouée", "code": "VALIDATION_ERROR", "details": details},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error path=%s", request.url.path)
        sentry_sdk.capture_exception(exc)
        message = "Erreur interne du serveur" if config.IS_PRODUCTION else f"Erreur interne du serveur: {exc}"
        return JSONResponse(status_code=500, content={"error": message, "code": "INTERNAL_ERROR"})
