from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime
import os
import sys
import httpx

# Add the parent directory to sys.path to resolve shared imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../")))

from shared.utils import (
    get_db_client, settings, HealthResponse, AppException, app_exception_handler
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware

from app import admin, cart, catalog, farmers, group_buying, notifications, orders, users

# Setup Logging
logger = setup_logging("marketplace-service")

app = FastAPI(title="UGLIES Marketplace Service")
app.add_exception_handler(AppException, app_exception_handler)

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="marketplace-service")

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalog.router)
app.include_router(farmers.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(group_buying.router)
app.include_router(users.router)
app.include_router(users.impact_router)
app.include_router(notifications.router)
app.include_router(admin.router)


async def create_indexes(db):
    await db.cart_items.create_index([("user_id", 1), ("added_at", 1)])
    await db.cart_items.create_index([("user_id", 1), ("product_id", 1)], unique=True)
    await db.products.create_index([("is_active", 1), ("category", 1)])
    await db.products.create_index("farmer_id")
    await db.orders.create_index([("user_id", 1), ("created_at", -1)])
    await db.orders.create_index("status")
    await db.orders.create_index("group_buying_id")
    await db.group_buying.create_index([("status", 1), ("deadline", 1)])
    await db.group_buying.create_index("neighborhood")
    await db.group_buying.create_index("organizer_id")
    await db.group_buying.create_index("invite_code", unique=True)
    await db.user_profiles.create_index("user_id", unique=True)
    await db.user_profiles.create_index([("neighborhood", 1), ("sustainability_score", -1)])
    await db.impact_metrics.create_index([("user_id", 1), ("date", -1)])
    await db.notifications.create_index([("user_id", 1), ("created_at", -1)])


@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.MONGO_DB_NAME]
    await create_indexes(app.mongodb)
    logger.info("Marketplace started", extra={
        "database": settings.MONGO_DB_NAME,
        "transactions": settings.MONGO_TRANSACTIONS,
    })


@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except Exception:
        db_status = "disconnected"

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{settings.AUTH_SERVICE_URL}/health", timeout=2.0)
            auth_status = "healthy" if resp.status_code == 200 else "unhealthy"
        except httpx.RequestError:
            auth_status = "unreachable"

    if db_status != "connected" or auth_status != "healthy":
        logger.error("Health Check Failed", extra={"database": db_status, "auth-service": auth_status})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Unhealthy"
        )

    return HealthResponse(
        service="marketplace-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
        dependencies={"auth-service": auth_status}
    )
