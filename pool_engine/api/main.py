"""FastAPI application serving a simulated weighted pool."""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pool_engine import __version__
from pool_engine.api.endpoints import router
from pool_engine.pool.errors import PoolError
from pool_engine.safe_int import SafeIntError
from pool_engine.simulation import InsufficientBalanceError

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("POOL_HOST", "0.0.0.0")
PORT = int(os.environ.get("POOL_PORT", "8000"))
DEBUG = os.environ.get("POOL_DEBUG", "false").lower() in ("true", "1", "yes")

logger = structlog.get_logger()

app = FastAPI(
    title="Weighted Pool Engine",
    description="Simulation API for a two-asset weighted AMM pool",
    version=__version__,
)


@app.exception_handler(PoolError)
async def pool_error_handler(request: Request, exc: PoolError) -> JSONResponse:
    """Map rejected pool calls to 400 with the pool's reason code."""
    logger.info("pool_call_rejected", path=request.url.path, code=exc.code, detail=str(exc))
    return JSONResponse(status_code=400, content={"code": exc.code, "detail": str(exc)})


@app.exception_handler(SafeIntError)
async def arithmetic_error_handler(request: Request, exc: SafeIntError) -> JSONResponse:
    logger.info("pool_arithmetic_error", path=request.url.path, detail=str(exc))
    return JSONResponse(status_code=400, content={"code": "ERR_ARITHMETIC", "detail": str(exc)})


@app.exception_handler(InsufficientBalanceError)
async def balance_error_handler(request: Request, exc: InsufficientBalanceError) -> JSONResponse:
    logger.info("pool_transfer_failed", path=request.url.path, detail=str(exc))
    return JSONResponse(
        status_code=400, content={"code": "ERR_INSUFFICIENT_BALANCE", "detail": str(exc)}
    )


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def configure_logging(debug: bool = DEBUG) -> None:
    """Route structlog output to the console at INFO (DEBUG when debug is set)."""
    log_level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


def run() -> None:
    """Run the pool API server.

    Configuration via environment variables:
    - POOL_HOST: Host to bind to (default: 0.0.0.0)
    - POOL_PORT: Port to bind to (default: 8000)
    - POOL_DEBUG: Enable debug logging and reload mode (default: false)
    """
    configure_logging()
    uvicorn.run(
        "pool_engine.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
