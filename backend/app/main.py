import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from app.api.router import api_router
from app.core.config import settings
from app.utils.cache import sweep_forever
from database.database import init_db

# Configure basic logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    sweeper = asyncio.create_task(sweep_forever())
    logger.info(f"{settings.PROJECT_NAME} started (database: {settings.DATABASE_URL.split('://')[0]})")
    yield
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper


app = FastAPI(
    title="Memory Finder API",
    version="1.0.0",
    description="Wedding video backend: semantic moment search, highlight compilations and project sharing.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET, same_site="lax")

# Include API Router
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "Memory Finder Backend", "version": "1.0.0"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
