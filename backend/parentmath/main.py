import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from parentmath.config import get_settings, get_supabase_client
from parentmath.middleware import setup_middleware
from parentmath.homework.router import router as homework_router
from parentmath.auth.router import router as auth_router
from parentmath.billing.router import router as billing_router

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    required = ["openai_api_key", "supabase_url", "supabase_service_key"]
    missing = [k for k in required if not getattr(settings, k)]
    if missing:
        logger.warning(f"Missing env vars: {missing}. Some features unavailable.")
    if not settings.stripe_secret_key or not settings.stripe_price_id:
        logger.warning("Stripe not configured. Checkout disabled.")

    get_supabase_client()
    yield


app = FastAPI(
    title="ParentMath API",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    lifespan=lifespan,
)

setup_middleware(app, settings.frontend_url)

app.include_router(homework_router, prefix="/api")
app.include_router(auth_router, prefix="/api/auth")
app.include_router(billing_router, prefix="/api/billing")


@app.get("/")
async def root():
    return {"status": "alive", "service": "parentmath-api"}


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "parentmath-api"}


@app.get("/health/detailed")
async def health_detailed():
    checks = {"api": "healthy"}
    checks["openai"] = "configured" if settings.openai_api_key else "missing"
    checks["supabase"] = "configured" if settings.supabase_url and settings.supabase_service_key else "missing"
    checks["stripe"] = "configured" if settings.stripe_secret_key and settings.stripe_price_id else "missing"
    overall = "healthy" if all(v != "missing" for v in checks.values()) else "degraded"
    return {"status": overall, "checks": checks}
