"""FastAPI application for the Store Service."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from services.store_service.errors import StoreError
from services.store_service.routers import (
    admin_router,
    checkout_router,
    orders_router,
    payments_router,
    wholesale_router,
)

logger = get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else "Invalid request"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "VALIDATION",
                    "message": message,
                    "reason": None,
                    "details": {"errors": [
                        {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
                    ]},
                }
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = "Internal server error"
        if not get_settings().is_production:
            message = f"{type(exc).__name__}: {exc}"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL",
                    "message": message,
                    "reason": None,
                    "details": {},
                }
            },
        )


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title=f"{settings.STORE_NAME} Store Service",
        version="0.1.0",
        description="Checkout, pricing, wholesale tiers, orders and payments.",
    )

    add_observability_middleware(app)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Storefront
    app.include_router(checkout_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    app.include_router(wholesale_router)

    # Admin (order management, tiers, inventory)
    app.include_router(admin_router)

    return app


app = create_app()
