import asyncio
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ginmai.config import EXPIRY_SWEEP_ENABLED, LOG_LEVEL
from ginmai.errors import StoreUnavailable
from ginmai.jobs.expiry_sweep import start_expiry_sweep_loop
from ginmai.routers.moments import router as moments_router
from ginmai.routers.users import router as users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
log = logging.getLogger(__name__)


def _run_alembic_upgrade() -> None:
    """Apply DB migrations on startup."""
    from alembic import command
    from alembic.config import Config

    root = Path(__file__).resolve().parent.parent
    cfg = Config(str(root / "alembic.ini"))
    command.upgrade(cfg, "head")


app = FastAPI(
    title="GinMai API",
    description="Spontaneous shared meals: moments, seats, connections and eat-again matches",
    version="0.1.0",
)


@app.on_event("startup")
def _startup_migrate() -> None:
    try:
        _run_alembic_upgrade()
    except Exception:
        # the app still starts without a database (e.g. local run without DB)
        log.warning("alembic upgrade failed on startup", exc_info=True)


@app.on_event("startup")
async def _startup_jobs() -> None:
    app.state.expiry_task = start_expiry_sweep_loop() if EXPIRY_SWEEP_ENABLED else None


@app.on_event("shutdown")
async def _shutdown_jobs() -> None:
    task = getattr(app.state, "expiry_task", None)
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    app.state.expiry_task = None


@app.exception_handler(StoreUnavailable)
async def _store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": {"kind": exc.kind.value, "reason": exc.reason.value, "message": "Please try again"}},
    )


app.include_router(moments_router)
app.include_router(users_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # TODO: restrict to the app's origins before launch
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    return {"status": "ok"}


@app.get("/", tags=["Root"])
async def root() -> dict:
    return {
        "message": "GinMai API",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ginmai.main:app", host="0.0.0.0", port=8000, reload=True)
