"""
OpenBank API Application Factory
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import get_config
from ..errors import (
    BankingError, DuplicateIdentity, IdentifierExhausted, InvalidCredentials,
    StoreUnavailable, UserNotFound, ValidationError
)
from ..logging_config import get_logger, log_action, setup_logging
from .transactions import router as transactions_router
from .users import router as users_router


ERROR_STATUS = [
    (ValidationError, 400),
    (InvalidCredentials, 401),
    (UserNotFound, 404),
    (DuplicateIdentity, 409),
    (StoreUnavailable, 503),
    (IdentifierExhausted, 503),
]


def status_for(error: BankingError) -> int:
    """HTTP status for a core error"""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(error, error_class):
            return status_code
    return 500


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, "openbank", config.log_format)
    logger = get_logger("openbank.api")

    app = FastAPI(
        title="OpenBank API",
        description="Demo online banking core with four sub-accounts per customer",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        return JSONResponse(
            status_code=status_for(exc),
            content={"success": False, **exc.to_dict()}
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": ValidationError.code, "message": message}
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        log_action(
            logger, "error", f"Unhandled error on {request.method} {request.url.path}: {exc}",
            action="request", resource=request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "SERVER_ERROR", "message": "Server error"}
        )

    # Include routers
    app.include_router(users_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])

    # Health check endpoint
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "OK",
            "service": "openbank_api",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "openbank.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )


app = create_app()
