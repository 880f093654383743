"""
FastAPI application entry point.

Run with ``uvicorn agroscore.main:app``.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from agroscore.config import settings
from agroscore.api.v1.models.responses import HealthResponse
from agroscore.api.v1.routers import areas
from agroscore.infrastructure.external_api_client import close_api_client
from agroscore.middleware.error_handler import ErrorHandlerMiddleware
from agroscore.middleware.rate_limit import limiter

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _log_configuration() -> None:
    logger.info(f"Starting {settings.app_name} v{settings.app_version} (log level {settings.log_level})")
    logger.info(
        f"Upstream: {settings.agro_api_base_url}, timeout={settings.agro_api_timeout}s, "
        f"attempts={settings.max_retry_attempts}"
    )
    logger.info(
        f"Comparison: {settings.comparison_area_count} areas of {settings.comparison_area_m2:.0f}m², "
        f"default radius {settings.comparison_default_radius_km}km, "
        f"call timeout {settings.comparison_call_timeout}s"
    )
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute per endpoint")
    if not settings.agro_api_key:
        logger.warning("AGRO_API_KEY is not set; every upstream request will be rejected")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup; release the upstream client on shutdown."""
    _log_configuration()

    yield

    logger.info("Shutting down, closing upstream client")
    await close_api_client()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Field Quality API for drawn ground areas

    Assesses the agronomic quality of a ground area from satellite soil and
    vegetation (NDVI) measurements, and compares it with nearby land.

    ## Endpoints

    - **Measure**: spherical area and centroid of a drawn rectangle or polygon
    - **Analyze**: register the area upstream, then score its soil temperature,
      moisture and NDVI history; returns a score, confidence, conditions and
      recommendations
    - **Compare**: sample random 3-hectare squares around the area, analyze them
      concurrently and rank them best first

    ## Behaviour

    1. Soil temperatures arrive in Kelvin and are reported in °C; moisture is
       percentage-scaled
    2. NDVI history is requested over shrinking windows (1 year down to 1 day)
       until captures are found; missing vegetation only lowers confidence
    3. Upstream 5xx and network errors are retried with exponential backoff
    4. A comparison fails only when none of its sampled areas could be analyzed
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ErrorHandlerMiddleware)

app.include_router(areas.router, prefix="/api/v1")


@app.get("/", tags=["health"], response_model=HealthResponse)
async def root() -> HealthResponse:
    """Service identity and upstream key status."""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        api_key_configured=bool(settings.agro_api_key),
    )


@app.get("/health", tags=["health"], response_model=HealthResponse, response_model_exclude_none=True)
async def health_check() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(status="healthy", service=settings.app_name)
