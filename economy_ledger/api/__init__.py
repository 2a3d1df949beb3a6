"""
Economy Ledger API Application Factory
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import ErrorKind, LedgerError
from ..logging_config import get_logger
from ..system import LedgerSystem
from .economies import router as economies_router
from .currencies import router as currencies_router
from .banks import router as banks_router
from .accounts import router as accounts_router
from .transactions import router as transactions_router


ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PERSISTENCE_FAILURE: 503,
}

logger = get_logger("economy_ledger.api")


def status_for(error: LedgerError) -> int:
    """HTTP status for a ledger error kind; other kinds are client errors"""
    return ERROR_STATUS.get(error.kind, 400)


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Economy Ledger API",
        description="Multi-currency banking ledger for tabletop game worlds",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.ledger_system = system or LedgerSystem.from_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: [{exc.kind.value}] {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # Include routers
    app.include_router(economies_router, prefix="/economies", tags=["Economies"])
    app.include_router(currencies_router, prefix="/currencies", tags=["Currencies"])
    app.include_router(banks_router, prefix="/banks", tags=["Banks"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "economy_ledger_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Economy Ledger API",
            "version": __version__,
            "world_id": app.state.ledger_system.store.world_id,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "economies": "/economies",
                "currencies": "/currencies",
                "banks": "/banks",
                "accounts": "/accounts",
                "transactions": "/transactions",
            }
        }

    return app
