import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.routers.dashboard import limiter, router as dashboard_router
from app.routers.site import router as site_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    dashboard = getattr(app.state, "dashboard", None)
    if dashboard is not None:
        await dashboard.aclose()
        app.state.dashboard = None


app = FastAPI(
    title="Site Sync – Content Dashboard API",
    description="Keeps the marketing site's content in sync with the CMS backend.",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(site_router)
app.include_router(dashboard_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Site Sync"}
