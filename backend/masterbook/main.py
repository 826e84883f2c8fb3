# backend/masterbook/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response
from pydantic import BaseModel

from . import __version__, models  # noqa: F401
from .core.config import settings
from .database import Base, engine
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import appointments as appointments_v1
from .routes.v1 import availability as availability_v1
from .routes.v1 import masters as masters_v1

# Configure logging
logging.basicConfig(
    level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"Starting MasterBook API {__version__} ({settings.environment})")
    # No migration tool; create_all only adds tables that are missing
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("MasterBook API shutting down")


app = FastAPI(
    title="MasterBook API",
    description="Scheduling and availability for masters and their students",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(availability_v1.router, prefix="/availability")
api_v1.include_router(appointments_v1.router, prefix="/appointments")
api_v1.include_router(masters_v1.router, prefix="/masters")


@api_v1.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness probe; does not touch the database."""
    return HealthResponse(status="healthy", version=__version__, environment=settings.environment)


app.include_router(api_v1)


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())
