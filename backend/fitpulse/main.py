import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("fitpulse").setLevel(logging.DEBUG)

from fitpulse.api.v1 import badges, challenges, goals, leaderboard, records, training_plans, users, workouts
from fitpulse.config import settings
from fitpulse.core.errors import ConcurrencyConflict, EngineError, InconsistentStateError, NotFoundError, ValidationError
from fitpulse.db.session import init_db

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
ROUTERS = (workouts, goals, records, badges, leaderboard, training_plans, challenges, users)
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_production()
    await init_db()
    logger.info("FitPulse started (%s)", settings.app_env)
    yield


limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="FitPulse API",
    description="Progress engine: goals, personal records, badges, leaderboards, challenges, training plans",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Domain errors to HTTP: 400 with the offending field, 404, 409 for bad stored state."""
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message})
    if isinstance(exc, ConcurrencyConflict):
        # the competing writer already produced the same outcome
        logger.info("Concurrent write on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=200, content={"detail": "Already handled."})
    if isinstance(exc, InconsistentStateError):
        logger.error("Inconsistent state on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=409, content={"detail": str(exc)})
    logger.exception("Unhandled engine error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


app.add_exception_handler(EngineError, engine_error_handler)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
for module in ROUTERS:
    app.include_router(module.router, prefix=API_PREFIX)

# Engine counters (records set, badges awarded) are exported here
app.mount("/metrics", make_asgi_app())


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok", "version": app.version}
