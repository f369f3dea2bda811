from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
from listseerr.api.api import api_router
from listseerr.core.config import settings
from listseerr.db.base import Base
from listseerr.db.session import engine
from listseerr.services.scheduler import ProcessingScheduler
from listseerr.tasks.processing import read_automatic_processing_settings, run_scheduled_processing
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    Base.metadata.create_all(bind=engine)
    scheduler = ProcessingScheduler(
        settings_reader=read_automatic_processing_settings,
        process_all=run_scheduled_processing,
    )
    await scheduler.reload()
    app.state.scheduler = scheduler
    logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} started")
    yield
    # Shutdown
    await scheduler.close()
    app.state.scheduler = None


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from reverse proxies
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
