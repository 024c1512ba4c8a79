"""
Gestionnaires d'exceptions de l'API.
- HTTPException: body JSON {"detail": ...} standard (auth 401/403, rate limit 429).
- StorefrontError: code HTTP porté par l'erreur métier, body {"success": false, "detail": ...},
  jamais de trace d'exécution côté client.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        logger.info(
            "storefront error path=%s type=%s status=%s detail=%s",
            request.url.path, type(exc).__name__, exc.status_code, exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.detail})
