import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

import locked.models  # noqa: F401  (register tables on Base.metadata)
from locked.core.config import settings
from locked.core.errors import (
    LockedException,
    locked_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from locked.db.base import Base, SessionLocal, engine, get_db
from locked.routers import blocked_apps as blocked_apps_router
from locked.routers import events as events_router
from locked.routers import foreground as foreground_router
from locked.routers import lock as lock_router
from locked.routers import risk as risk_router
from locked.routers import sessions as sessions_router
from locked.services.runtime import LockedRuntime, get_runtime

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)

# Quiet the per-statement engine log unless explicitly asked for.
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def create_app(runtime: Optional[LockedRuntime] = None) -> FastAPI:
    """
    Build the API. A runtime passed in is used as-is (tests); otherwise one
    is created on startup against the configured database.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rt = runtime
        if rt is None:
            # Embedded store: make sure the tables exist before the first poll.
            Base.metadata.create_all(bind=engine)
            rt = LockedRuntime(SessionLocal, token_path=settings.TOKEN_FILE)
        app.state.runtime = rt
        rt.start()
        try:
            yield
        finally:
            rt.close()

    app = FastAPI(
        title="Locked API",
        description=(
            "**Locked — app blocking with a physical unlock token**\n\n"
            "Records blocked launches, scores unlock risk, and keeps one "
            "blocking session open while the lock is engaged.\n\n"
            "All error responses follow the `{code, message, details}` envelope."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers (most specific first) ---
    app.add_exception_handler(LockedException, locked_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --- Routers ---
    app.include_router(foreground_router.router)
    app.include_router(lock_router.router)
    app.include_router(blocked_apps_router.router)
    app.include_router(events_router.router)
    app.include_router(sessions_router.router)
    app.include_router(risk_router.router)

    @app.get("/health", tags=["health"], summary="Health check")
    def health(
        db: Session = Depends(get_db),
        rt: LockedRuntime = Depends(get_runtime),
    ):
        """
        Returns `{"status": "ok", "db": "ok", "lock": ...}` when the store is
        reachable. Returns HTTP 503 if it is not.
        """
        try:
            db.execute(text("SELECT 1"))
            db_status = "ok"
        except Exception:
            logger.exception("Health check: database unreachable")
            db_status = "unreachable"

        if db_status != "ok":
            return JSONResponse(
                status_code=503,
                content={"status": "error", "db": db_status},
            )
        return {"status": "ok", "db": "ok", "lock": rt.lock.state.value, "env": settings.APP_ENV}

    return app


app = create_app()
