from fastapi import FastAPI, Depends, HTTPException, status, Request
from fastapi.middleware.cors import CORSMiddleware
from datetime import timedelta, datetime
from bson import ObjectId
from bson.errors import InvalidId
import os
import sys

# Add the parent directory to sys.path to resolve shared imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../")))

from shared.utils import (
    get_db_client, settings, get_password_hash, verify_password,
    create_access_token, create_refresh_token, verify_refresh_token, require_auth,
    SuccessResponse, NotFoundException, UnauthorizedException, HealthResponse,
    AppException, app_exception_handler
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware, limiter

from app.schemas import UserRegister, UserLogin, Token, UserResponse, RefreshTokenRequest
from app.models import UserDB, RevokedTokenDB

# Setup Logging
logger = setup_logging("auth-service")

app = FastAPI(title="UGLIES Auth Service")
app.add_exception_handler(AppException, app_exception_handler)

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware, service_name="auth-service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.AUTH_DB_NAME]
    await app.mongodb.users.create_index("email", unique=True)
    # Revoked tokens expire together with the token itself
    await app.mongodb.revoked_tokens.create_index("exp", expireAfterSeconds=0)

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Helpers ---
def issue_tokens(user_id: str, email: str) -> Token:
    claims = {"sub": user_id, "email": email}
    return Token(
        access_token=create_access_token(
            data=claims,
            expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        ),
        refresh_token=create_refresh_token(data=claims),
    )

async def ensure_not_revoked(payload: dict):
    if "jti" in payload:
        is_revoked = await app.mongodb.revoked_tokens.find_one({"jti": payload["jti"]})
        if is_revoked:
            raise UnauthorizedException("Token has been revoked")

async def revoke(payload: dict):
    if "jti" in payload:
        revoked = RevokedTokenDB(jti=payload["jti"], exp=datetime.utcfromtimestamp(payload["exp"]))
        await app.mongodb.revoked_tokens.insert_one(revoked.dict())

# --- Endpoints ---

@app.post("/register", response_model=SuccessResponse[UserResponse])
@limiter.limit("10/minute")
async def register(user: UserRegister, request: Request):
    existing_user = await app.mongodb.users.find_one({"email": user.email})
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    user_db = UserDB(
        email=user.email,
        name=user.name,
        password_hash=get_password_hash(user.password),
    )
    new_user = await app.mongodb.users.insert_one(user_db.dict(by_alias=True, exclude={"id"}))
    created_user = await app.mongodb.users.find_one({"_id": new_user.inserted_id})
    created_user["id"] = str(created_user["_id"])

    logger.info("User registered", extra={"user_id": created_user["id"]})
    return SuccessResponse(data=UserResponse(**created_user), message="User registered successfully")

@app.post("/login", response_model=SuccessResponse[Token])
@limiter.limit("5/minute")
async def login(user_credentials: UserLogin, request: Request):
    user = await app.mongodb.users.find_one({"email": user_credentials.email})
    if not user or not verify_password(user_credentials.password, user["password_hash"]):
        raise UnauthorizedException("Incorrect email or password")

    await app.mongodb.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"last_login_at": datetime.utcnow()}}
    )
    return SuccessResponse(data=issue_tokens(str(user["_id"]), user["email"]))

@app.get("/verify", response_model=SuccessResponse[dict])
async def verify(payload: dict = Depends(require_auth)):
    await ensure_not_revoked(payload)
    return SuccessResponse(data=payload, message="Token is valid")

@app.post("/refresh", response_model=SuccessResponse[Token])
async def refresh_token(request: RefreshTokenRequest):
    payload = verify_refresh_token(request.refresh_token)
    await ensure_not_revoked(payload)

    # Rotate: the presented refresh token cannot be used twice
    await revoke(payload)
    return SuccessResponse(data=issue_tokens(payload["sub"], payload.get("email", "")))

@app.post("/logout", response_model=SuccessResponse[dict])
async def logout(request: RefreshTokenRequest, payload: dict = Depends(require_auth)):
    await revoke(payload)
    await revoke(verify_refresh_token(request.refresh_token))
    return SuccessResponse(message="Logged out successfully")

@app.get("/me", response_model=SuccessResponse[UserResponse])
async def me(payload: dict = Depends(require_auth)):
    await ensure_not_revoked(payload)
    try:
        oid = ObjectId(payload["sub"])
    except (InvalidId, TypeError):
        raise NotFoundException("Invalid User ID format")

    user = await app.mongodb.users.find_one({"_id": oid})
    if not user:
        raise NotFoundException("User not found")
    user["id"] = str(user["_id"])
    return SuccessResponse(data=UserResponse(**user))

@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except Exception:
        db_status = "disconnected"

    if db_status != "connected":
        logger.error("Health Check Failed", extra={"database": db_status})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Unhealthy"
        )

    return HealthResponse(
        service="auth-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status
    )
