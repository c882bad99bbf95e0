import uvicorn
import time
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from bugbot.agents.report_agent import ReportAgent
from bugbot.api.reports import router as reports_router
from bugbot.api.sessions import router as sessions_router
from bugbot.core.config import (
    CORS_ORIGINS,
    REPORT_CACHE_TTL_SECONDS,
    SESSION_TTL_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)
from bugbot.services.cache_service import FollowupStore, ReportCache, sweep_forever
from bugbot.sessions.session_manager import BugReportSessionManager
from bugbot.sessions.session_store import SessionStore
from bugbot.utils.logging_config import setup_logging

# Initialize enhanced logging
setup_logging(level=logging.INFO)
logger = logging.getLogger("main")


# ---------------------------------------------------------------------------
# Lifespan: stores, agent and the periodic sweeper
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    agent = ReportAgent()
    session_store = SessionStore(ttl_seconds=SESSION_TTL_SECONDS)

    app.state.report_agent = agent
    app.state.report_cache = ReportCache(ttl_seconds=REPORT_CACHE_TTL_SECONDS)
    app.state.followup_store = FollowupStore(ttl_seconds=SESSION_TTL_SECONDS)
    app.state.session_store = session_store
    # Late-bound so a replaced app.state.report_agent is picked up
    app.state.session_manager = BugReportSessionManager(
        session_store, lambda report_input: app.state.report_agent.generate(report_input)
    )

    sweeper = asyncio.create_task(sweep_forever(
        [session_store, app.state.report_cache, app.state.followup_store],
        SWEEP_INTERVAL_SECONDS,
    ))
    logger.info("BugBot report service started")
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        await agent.close()
        logger.info("BugBot report service stopped")


app = FastAPI(title="BugBot Report Pipeline API", lifespan=lifespan)

# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Incoming: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Outgoing: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Time: {process_time:.2f}ms"
            )
            return response
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - Error: {str(e)}")
            raise

app.add_middleware(LoggingMiddleware)

if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled for origins: %s", ", ".join(CORS_ORIGINS))

# Health endpoint
@app.get("/health")
async def health_check():
    return {"status": "ok"}

# Register routers
app.include_router(reports_router)
app.include_router(sessions_router)

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
