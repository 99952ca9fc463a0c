from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

from .api.routes import bookings, dashboard, pricing, resources
from .database import close_client, ensure_indexes, get_database
from .errors import BookingError, violations_from_errors
from .events import publisher
from .integrations.notifier import WebhookNotifier
from .pricing.catalog import PricingCatalog, load_catalog
from .redis_service import redis_service

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="Tour & Travels Booking API", version="1.0.0")

# Built-in categories until the stored catalog is loaded on startup
app.state.catalog = PricingCatalog.defaults()

# Booking event subscribers
publisher.subscribe(redis_service.invalidate_dashboard_cache)
publisher.subscribe(WebhookNotifier())


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 409:
        logger.warning(f"⚠️ {request.method} {request.url.path}: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    violations = violations_from_errors(exc.errors(), skip_prefix=("body", "query", "path"))
    return JSONResponse(
        status_code=422,
        content={"error": "VALIDATION_ERROR", "message": "Invalid request", "violations": violations},
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "categories": len(app.state.catalog),
        "cache": redis_service.available,
        "dry_run": os.getenv('DRY_RUN', 'true').lower() == 'true'
    }


# Include routers
app.include_router(bookings.router)
app.include_router(dashboard.router)
app.include_router(pricing.router)
app.include_router(resources.router)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    db = get_database()
    await ensure_indexes(db)
    app.state.catalog = await load_catalog(db)
    await redis_service.connect()
    logger.info("🚀 Tour & Travels API started")


@app.on_event("shutdown")
async def shutdown():
    await publisher.drain()
    await redis_service.disconnect()
    close_client()
