import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app import config
from app.database import init_db, ping_db
from app.routes import auth, push, reels

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Reel Share")

# Include routers
app.include_router(auth.router)
app.include_router(reels.router)
app.include_router(push.router)


@app.on_event("startup")
def startup():
    """Initialize database on app startup."""
    init_db()


@app.get("/health")
async def health():
    """Health check that also proves the database is reachable."""
    try:
        ping_db()
    except Exception as e:
        logger.error(f"[HEALTH] Database check failed: {e}")
        return JSONResponse({"status": "error", "database": "unreachable", "error": str(e)}, status_code=500)
    return JSONResponse({"status": "ok", "database": "connected"})
