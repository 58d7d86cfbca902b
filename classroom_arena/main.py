"""
FastAPI main application
Classroom Arena - timed multi-team challenge sessions

Routers in classroom_arena/api/:
- health.py: Health check
- admin.py: Operator sign-in, timer controls, grading, reset
- team.py: Team registration, team view and submissions
- display.py: Session snapshot, challenge catalog, public display
- live.py: WebSocket streams of the team / operator / display views

All routers reach shared handles through classroom_arena.state.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classroom_arena import __version__, state
from classroom_arena.api import admin, display, health, live, team
from classroom_arena.config import load_settings
from classroom_arena.errors import ArenaError
from classroom_arena.models import Settings
from classroom_arena.utils import Clock, system_clock


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, clock: Clock = system_clock) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        try:
            arena = state.build_arena(settings or load_settings(), clock)
            await arena.sessions.bootstrap()
        except Exception as e:
            logger.error(f"❌ Failed to start session: {e}")
            raise
        state.ARENA = arena
        logger.info(f"✅ Server started for session '{arena.settings.session_id}'")

        yield

        # Shutdown
        arena.store.close()
        state.ARENA = None
        logger.info("🛑 Server shutting down")

    app = FastAPI(
        title="Classroom Arena",
        description="Timed multi-team challenge sessions with live operator, team and display views",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware (allow all origins for development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ArenaError)
    async def arena_error_handler(request: Request, exc: ArenaError):
        logger.warning(f"⚠️ {request.method} {request.url.path} -> {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    # ==================== INCLUDE ROUTERS ====================

    app.include_router(health.router)
    app.include_router(admin.router)
    app.include_router(team.router)
    app.include_router(display.router)
    app.include_router(live.router)

    return app


app = create_app()


# ==================== RUN SERVER ====================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
