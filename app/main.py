import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.database import create_db_and_tables
from app.config import settings
from app.exceptions import PurchaseError
from app.routes import course_purchase, health

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="Course Marketplace Purchase API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.client_url,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PurchaseError)
async def purchase_error_handler(request: Request, exc: PurchaseError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


app.include_router(course_purchase.router, prefix="/api/v1/purchase", tags=["Course Purchase"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "purchase_endpoints": [
            "/api/v1/purchase/checkout/create-checkout-session",
            "/api/v1/purchase/webhook",
            "/api/v1/purchase/course/{course_id}/detail-with-status",
            "/api/v1/purchase/course/{course_id}/payment-success",
            "/api/v1/purchase/{purchase_id}/events",
            "/api/v1/purchase/my-learning",
            "/api/v1/purchase/",
        ],
        "health": ["/health/check"],
    }
